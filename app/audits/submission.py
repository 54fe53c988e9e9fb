"""Submission checks and the in_progress -> submitted transition."""
import logging
from collections.abc import Iterable
from uuid import UUID

from app.audits.errors import (
    AuditNotEditable,
    IncompleteAudit,
    MissingEvidence,
    SubmissionRejected,
)
from app.audits.progress import calculate_progress
from app.audits.repository import AuditRepository
from app.audits.schemas import AuditItemState, SubmissionResult
from app.models import AuditStatus, Remark

logger = logging.getLogger(__name__)


def missing_evidence(items: Iterable[AuditItemState]) -> list[UUID]:
    """Ids of items marked "no" that have no evidence attached."""
    return [item.id for item in items if item.remark == Remark.NO and not item.evidence]


def submission_blocker(items: Iterable[AuditItemState]) -> SubmissionRejected | None:
    """
    Return the reason the items cannot be submitted, or None.

    Missing evidence is reported ahead of incompleteness.
    """
    items = list(items)
    missing = missing_evidence(items)
    if missing:
        return MissingEvidence(missing)

    progress = calculate_progress(items)
    if progress.total == 0 or progress.completed < progress.total:
        return IncompleteAudit(progress.completed, progress.total)
    return None


def can_submit(items: Iterable[AuditItemState]) -> bool:
    return submission_blocker(items) is None


def check_submission(items: Iterable[AuditItemState]) -> None:
    blocker = submission_blocker(items)
    if blocker is not None:
        raise blocker


class SubmissionGate:
    """Validates an audit's items and moves the audit to "submitted"."""

    def __init__(self, repository: AuditRepository):
        self.repository = repository

    def submit(self, audit_id: UUID, items: Iterable[AuditItemState]) -> SubmissionResult:
        """
        Submit an audit.

        The items are re-checked here rather than trusting an earlier
        can_submit answer. Raises MissingEvidence or IncompleteAudit without
        touching the store, and AuditNotEditable if the audit already left
        "in_progress".
        """
        items = list(items)
        check_submission(items)

        audit = self.repository.get_audit(audit_id)
        if audit.status != AuditStatus.IN_PROGRESS.value:
            raise AuditNotEditable(audit_id, audit.status)

        audit = self.repository.update_audit_status(audit_id, AuditStatus.SUBMITTED)
        logger.info(f"Audit {audit_id} submitted with {len(items)} items")

        return SubmissionResult(
            audit_id=audit.id,
            status=audit.status,
            submitted_at=audit.submitted_at,
            progress=calculate_progress(items),
        )
