"""Audit routes: checklist import, listing, progress, saving and submission."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile

from app.audits.importer import import_checklist
from app.audits.schemas import (
    AuditDetail,
    AuditSummary,
    ImportResult,
    SubmissionResult,
)
from app.audits.sessions import AuditSessions, get_audit_sessions
from app.audits.store import AuditItemStore
from app.audits.submission import submission_blocker
from app.core.config import settings
from app.routes.auth import get_current_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/audits", tags=["audits"])

CHECKLIST_SUFFIXES = (".xlsx", ".xls", ".csv", ".tsv")


async def read_upload(upload: UploadFile) -> bytes:
    """Read an uploaded file, enforcing the configured size cap."""
    limit = settings.max_upload_mb * 1024 * 1024
    data = await upload.read(limit + 1)
    if len(data) > limit:
        raise HTTPException(
            status_code=413,
            detail=f"File exceeds the {settings.max_upload_mb} MB upload limit",
        )
    return data


def audit_detail(sessions: AuditSessions, store: AuditItemStore) -> AuditDetail:
    blocker = submission_blocker(store.items)
    audit = sessions.repository.get_audit(store.audit_id)
    return AuditDetail(
        audit=AuditSummary.from_audit(audit),
        columns=store.columns,
        items=store.items,
        progress=store.progress,
        can_submit=blocker is None,
        blocked_by=type(blocker).__name__ if blocker else None,
        save_status=sessions.save_status(store),
    )


@router.post("/import", status_code=201, response_model=ImportResult)
async def import_audit(
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id),
    sessions: AuditSessions = Depends(get_audit_sessions),
):
    """
    Upload a checklist spreadsheet and start an audit for it.

    Accepts .xlsx, .csv and .tsv files. Creates a template from the sheet
    rows, an in-progress audit owned by the uploader, and one item per row.
    Returns 400 if the file cannot be read as a spreadsheet.
    """
    filename = file.filename or "checklist.csv"
    if not filename.lower().endswith(CHECKLIST_SUFFIXES):
        raise HTTPException(status_code=400, detail=f"Unsupported file type: {filename}")

    data = await read_upload(file)
    return import_checklist(sessions.repository, data, filename, user_id)


@router.get("", response_model=list[AuditSummary])
async def list_audits(
    auditor_id: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    sessions: AuditSessions = Depends(get_audit_sessions),
):
    """List audits, newest first, optionally only those of one auditor."""
    audits = sessions.repository.list_audits(auditor_id=auditor_id, limit=limit)
    return [AuditSummary.from_audit(audit) for audit in audits]


@router.get("/{audit_id}", response_model=AuditDetail)
async def get_audit(
    audit_id: UUID,
    sessions: AuditSessions = Depends(get_audit_sessions),
):
    """
    Load an audit with its items.

    Reconciles the working copy with the record store (unless edits are
    still waiting to be written) and returns the items in sheet order, the
    column list taken from the first row, and the current statistics.
    """
    store = sessions.open(audit_id)
    return audit_detail(sessions, store)


@router.get("/{audit_id}/progress")
async def get_progress(
    audit_id: UUID,
    sessions: AuditSessions = Depends(get_audit_sessions),
):
    """Return completion statistics, whether the audit can be submitted, and save state."""
    store = sessions.get(audit_id)
    blocker = submission_blocker(store.items)
    return {
        "audit_id": str(audit_id),
        "status": store.status,
        "progress": store.progress.model_dump(),
        "can_submit": blocker is None,
        "blocked_by": type(blocker).__name__ if blocker else None,
        "save_status": sessions.save_status(store).model_dump(mode="json"),
    }


@router.post("/{audit_id}/save")
async def save_audit(
    audit_id: UUID,
    sessions: AuditSessions = Depends(get_audit_sessions),
):
    """
    Write pending edits now and retry writes that failed.

    Returns 503 if any item still could not be saved; the edits stay in the
    working copy either way.
    """
    store = sessions.get(audit_id)
    failed = await store.save()
    status = sessions.save_status(store)
    if failed:
        raise HTTPException(
            status_code=503,
            detail={
                "message": f"{len(failed)} items could not be saved",
                "failed": status.failed,
            },
        )
    return {"success": True, "save_status": status.model_dump(mode="json")}


@router.post("/{audit_id}/submit", response_model=SubmissionResult)
async def submit_audit(
    audit_id: UUID,
    user_id: str = Depends(get_current_user_id),
    sessions: AuditSessions = Depends(get_audit_sessions),
):
    """
    Submit the audit for review.

    Requires every item to have a remark and every "No" remark to have
    evidence. Returns 400 with the reason otherwise, or if the audit was
    already submitted.
    """
    store = sessions.get(audit_id)
    return await store.submit(user_id=user_id)
