"""Item routes for filling out audit rows and attaching evidence."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import FileResponse
from sqlmodel import SQLModel

from app.audits.errors import EvidenceNotFound
from app.audits.sessions import AuditSessions, get_audit_sessions
from app.audits.storage import EvidenceStorage, build_evidence_path, get_evidence_storage
from app.audits.store import normalize_field_value
from app.audits.submission import can_submit
from app.routes.audits import read_upload
from app.routes.auth import get_current_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/audits/{audit_id}/items", tags=["items"])


class ItemUpdate(SQLModel):
    """Fields to change; omitted fields are left alone. Remark "", "unset" or null clears it."""
    audit_details: str | None = None
    observation: str | None = None
    remark: str | None = None


@router.patch("/{item_id}")
async def update_item(
    audit_id: UUID,
    item_id: UUID,
    update: ItemUpdate,
    user_id: str = Depends(get_current_user_id),
    sessions: AuditSessions = Depends(get_audit_sessions),
):
    """
    Edit an item's audit details, observation or remark.

    Every provided field is validated before any is applied, so a bad
    remark rejects the whole request. The change is applied to the working
    copy at once and written after the debounce window. Returns the item
    with the recomputed statistics.
    """
    store = sessions.get(audit_id)
    changes = update.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")

    store.ensure_editable(user_id)
    store.get_item(item_id)
    for field, value in changes.items():
        normalize_field_value(field, value)

    for field, value in changes.items():
        item = store.update_field(item_id, field, value, user_id=user_id)

    return {
        "success": True,
        "item": item.model_dump(mode="json"),
        "progress": store.progress.model_dump(),
        "can_submit": can_submit(store.items),
    }


@router.post("/{item_id}/evidence", status_code=201)
async def upload_evidence(
    audit_id: UUID,
    item_id: UUID,
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id),
    sessions: AuditSessions = Depends(get_audit_sessions),
    storage: EvidenceStorage = Depends(get_evidence_storage),
):
    """
    Attach an evidence file to an item.

    The file is stored first and its metadata row written second. Both are
    refused up front if the audit can no longer be edited, so a rejected
    upload does not leave a stored file behind.
    """
    store = sessions.get(audit_id)
    store.ensure_editable(user_id)
    store.get_item(item_id)

    file_name = file.filename or "evidence"
    data = await read_upload(file)
    path = storage.put(build_evidence_path(item_id, file_name), data)

    # A failure from here on leaves the stored file without metadata
    evidence = sessions.repository.insert_evidence(
        item_id,
        file_name=file_name,
        file_path=path,
        file_type=file.content_type,
        user_id=user_id,
    )
    item = store.add_evidence(item_id, evidence, user_id=user_id)

    return {
        "success": True,
        "evidence": evidence.model_dump(mode="json"),
        "item": item.model_dump(mode="json"),
        "progress": store.progress.model_dump(),
        "can_submit": can_submit(store.items),
    }


@router.get("/{item_id}/evidence/{evidence_id}")
async def download_evidence(
    audit_id: UUID,
    item_id: UUID,
    evidence_id: UUID,
    sessions: AuditSessions = Depends(get_audit_sessions),
    storage: EvidenceStorage = Depends(get_evidence_storage),
):
    """Return a stored evidence file under the name it was uploaded with."""
    store = sessions.get(audit_id)
    store.get_item(item_id)

    evidence = sessions.repository.get_evidence(evidence_id)
    if evidence.audit_item_id != item_id:
        raise EvidenceNotFound(evidence_id)
    if not storage.exists(evidence.file_path):
        raise HTTPException(status_code=404, detail="Evidence file not found")

    return FileResponse(
        str(storage.resolve(evidence.file_path)),
        media_type=evidence.file_type or "application/octet-stream",
        filename=evidence.file_name,
    )
