"""Record store for templates, audits, items and evidence metadata."""
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.audits.errors import (
    AuditNotFound,
    EvidenceNotFound,
    ItemNotFound,
    PersistenceFailure,
)
from app.audits.schemas import AuditItemState, CellValue, EvidenceRef
from app.models import Audit, AuditItem, AuditStatus, Evidence, Template

logger = logging.getLogger(__name__)

# Columns an item write is allowed to touch
WRITABLE_ITEM_COLUMNS = {"audit_details", "observation", "remark", "last_modified_by"}


class AuditRepository:
    """
    SQLModel-backed persistence for the audit engine.

    Every operation opens its own session on the engine, so the repository
    can be used from request handlers and from scheduled writes alike.
    Database errors are logged and re-raised as PersistenceFailure.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        try:
            with Session(self.engine) as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"{operation} failed: {e}")
            raise PersistenceFailure(operation, str(e)) from e

    def import_sheet(
        self,
        *,
        template_title: str,
        template_description: str,
        audit_title: str,
        records: list[dict[str, CellValue]],
        user_id: str,
    ) -> tuple[Template, Audit]:
        """
        Create the template, the audit and one item per record.

        All rows are written in a single transaction, so a failed import
        leaves nothing behind.
        """
        with self._session("import checklist") as session:
            template = Template(
                title=template_title,
                description=template_description,
                structure=records,
                created_by=user_id,
            )
            session.add(template)
            session.flush()  # Get template.id

            audit = Audit(
                template_id=template.id,
                title=audit_title,
                auditor_id=user_id,
                status=AuditStatus.IN_PROGRESS.value,
            )
            session.add(audit)
            session.flush()  # Get audit.id

            for index, record in enumerate(records):
                session.add(
                    AuditItem(
                        audit_id=audit.id,
                        row_index=index,
                        original_data=record,
                        last_modified_by=user_id,
                    )
                )

            session.commit()
            session.refresh(template)
            session.refresh(audit)
            return template, audit

    def get_audit(self, audit_id: UUID) -> Audit:
        with self._session("fetch audit") as session:
            audit = session.get(Audit, audit_id)
            if not audit:
                raise AuditNotFound(audit_id)
            return audit

    def get_template(self, template_id: UUID) -> Template | None:
        with self._session("fetch template") as session:
            return session.get(Template, template_id)

    def list_audits(self, auditor_id: str | None = None, limit: int = 20) -> list[Audit]:
        """Most recently created audits first, optionally for one auditor."""
        with self._session("list audits") as session:
            statement = select(Audit).order_by(Audit.created_at.desc()).limit(limit)
            if auditor_id:
                statement = statement.where(Audit.auditor_id == auditor_id)
            return list(session.exec(statement).all())

    def fetch_items(self, audit_id: UUID) -> list[AuditItemState]:
        """Items of an audit in sheet order, each with its evidence in upload order."""
        with self._session("fetch audit items") as session:
            items = session.exec(
                select(AuditItem)
                .where(AuditItem.audit_id == audit_id)
                .order_by(AuditItem.row_index)
            ).all()

            evidence_by_item: dict[UUID, list[EvidenceRef]] = {item.id: [] for item in items}
            if items:
                rows = session.exec(
                    select(Evidence)
                    .where(Evidence.audit_item_id.in_(list(evidence_by_item)))
                    .order_by(Evidence.uploaded_at)
                ).all()
                for row in rows:
                    evidence_by_item[row.audit_item_id].append(
                        EvidenceRef(id=row.id, file_name=row.file_name, file_path=row.file_path)
                    )

            return [
                AuditItemState(
                    id=item.id,
                    row_index=item.row_index,
                    original_data=item.original_data or {},
                    audit_details=item.audit_details or "",
                    observation=item.observation or "",
                    remark=item.remark or None,
                    evidence=evidence_by_item[item.id],
                )
                for item in items
            ]

    def update_item_fields(self, item_id: UUID, changes: dict[str, Any]) -> None:
        """Write changed item columns and stamp updated_at."""
        unknown = set(changes) - WRITABLE_ITEM_COLUMNS
        if unknown:
            raise ValueError(f"Columns not writable: {sorted(unknown)}")

        with self._session(f"update item {item_id}") as session:
            item = session.get(AuditItem, item_id)
            if not item:
                raise ItemNotFound(item_id)
            for column, value in changes.items():
                setattr(item, column, value)
            item.updated_at = datetime.now(UTC)
            session.add(item)
            session.commit()

    def insert_evidence(
        self,
        item_id: UUID,
        *,
        file_name: str,
        file_path: str,
        file_type: str | None,
        user_id: str,
    ) -> EvidenceRef:
        with self._session(f"insert evidence for item {item_id}") as session:
            if not session.get(AuditItem, item_id):
                raise ItemNotFound(item_id)
            evidence = Evidence(
                audit_item_id=item_id,
                file_name=file_name,
                file_path=file_path,
                file_type=file_type,
                uploaded_by=user_id,
            )
            session.add(evidence)
            session.commit()
            session.refresh(evidence)
            return EvidenceRef(id=evidence.id, file_name=evidence.file_name, file_path=evidence.file_path)

    def get_evidence(self, evidence_id: UUID) -> Evidence:
        with self._session("fetch evidence") as session:
            evidence = session.get(Evidence, evidence_id)
            if not evidence:
                raise EvidenceNotFound(evidence_id)
            return evidence

    def update_audit_status(self, audit_id: UUID, status: AuditStatus) -> Audit:
        """Set the audit status; moving to "submitted" stamps submitted_at."""
        with self._session(f"update status of audit {audit_id}") as session:
            audit = session.get(Audit, audit_id)
            if not audit:
                raise AuditNotFound(audit_id)
            audit.status = status.value
            if status == AuditStatus.SUBMITTED:
                audit.submitted_at = datetime.now(UTC)
            session.add(audit)
            session.commit()
            session.refresh(audit)
            return audit
