"""Completion statistics for an audit's items."""
from collections.abc import Iterable

from app.audits.schemas import AuditItemState, AuditProgress
from app.models import Remark


def completion_percent(completed: int, total: int) -> int:
    """Percentage of completed items, rounded half up. 0 for an empty audit."""
    if total == 0:
        return 0
    # Integer form of floor(100 * completed / total + 0.5)
    return (200 * completed + total) // (2 * total)


def calculate_progress(items: Iterable[AuditItemState]) -> AuditProgress:
    """
    Derive the audit statistics from the items alone.

    Always computed from the full item list, never patched incrementally,
    so the numbers cannot drift from the item state.
    """
    items = list(items)
    total = len(items)
    completed = sum(1 for item in items if item.remark is not None)
    issues = sum(1 for item in items if item.remark == Remark.NO)
    evidence_count = sum(len(item.evidence) for item in items)

    return AuditProgress(
        total=total,
        completed=completed,
        issues=issues,
        evidence_count=evidence_count,
        completion_percent=completion_percent(completed, total),
    )
