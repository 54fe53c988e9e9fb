"""Errors raised by the audit import and progress engine.

Validation errors (field, editability and submission checks) are raised
before anything is written. ``PersistenceFailure`` covers the record store
and the evidence store; it never ends the process and local state is kept
when it happens.
"""

from collections.abc import Iterable
from uuid import UUID


class AuditEngineError(Exception):
    """Base class for all audit engine errors."""


class ParseError(AuditEngineError):
    """The uploaded file is not a readable spreadsheet."""


class AuditNotFound(AuditEngineError):
    def __init__(self, audit_id: UUID):
        self.audit_id = audit_id
        super().__init__(f"Audit {audit_id} not found")


class ItemNotFound(AuditEngineError):
    def __init__(self, item_id: UUID):
        self.item_id = item_id
        super().__init__(f"Audit item {item_id} not found")


class EvidenceNotFound(AuditEngineError):
    def __init__(self, evidence_id: UUID | str):
        self.evidence_id = evidence_id
        super().__init__(f"Evidence {evidence_id} not found")


class UnknownField(AuditEngineError):
    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Field '{field}' cannot be edited")


class InvalidFieldValue(AuditEngineError):
    def __init__(self, field: str, value, message: str | None = None):
        self.field = field
        self.value = value
        super().__init__(message or f"Invalid value {value!r} for field '{field}'")


class InvalidEnumValue(InvalidFieldValue):
    """A value outside a fixed enumeration, e.g. an unknown remark."""

    def __init__(self, field: str, value, allowed: Iterable[str]):
        self.allowed = list(allowed)
        super().__init__(
            field,
            value,
            f"Invalid value {value!r} for '{field}'; expected one of: {', '.join(self.allowed)}",
        )


class AuditNotEditable(AuditEngineError):
    def __init__(self, audit_id: UUID, status: str):
        self.audit_id = audit_id
        self.status = status
        super().__init__(f"Audit {audit_id} is {status} and can no longer be edited")


class NotAuditAssignee(AuditEngineError):
    def __init__(self, audit_id: UUID, user_id: str):
        self.audit_id = audit_id
        self.user_id = user_id
        super().__init__(f"User {user_id} is not the auditor assigned to audit {audit_id}")


class SubmissionRejected(AuditEngineError):
    """Submission preconditions are not met; nothing was changed."""


class IncompleteAudit(SubmissionRejected):
    def __init__(self, completed: int, total: int):
        self.completed = completed
        self.total = total
        if total == 0:
            message = "Cannot submit: the audit has no items"
        else:
            message = f"Cannot submit: {total - completed} of {total} items have no remark"
        super().__init__(message)


class MissingEvidence(SubmissionRejected):
    def __init__(self, item_ids: list[UUID]):
        self.item_ids = item_ids
        super().__init__(
            f'Please upload evidence for all "No" remarks before submitting '
            f"({len(item_ids)} missing)"
        )


class PersistenceFailure(AuditEngineError):
    """A read or write against the record store or evidence store failed."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} failed: {reason}")
