"""Working copy of one audit's items.

The record store is the system of record. ``load`` replaces the working
copy wholesale with what the store returns; nothing is merged. Edits made
here are applied locally at once, the statistics are recomputed from the
full item list, and the write is handed to the DebouncedPersister.
"""

import logging
from collections.abc import Callable
from typing import Any
from uuid import UUID

from app.audits.errors import (
    AuditNotEditable,
    InvalidEnumValue,
    InvalidFieldValue,
    ItemNotFound,
    NotAuditAssignee,
    UnknownField,
)
from app.audits.persister import DebouncedPersister
from app.audits.progress import calculate_progress
from app.audits.repository import AuditRepository
from app.audits.schemas import AuditItemState, AuditProgress, EvidenceRef, SubmissionResult
from app.audits.submission import SubmissionGate, check_submission
from app.models import AuditStatus, Remark

logger = logging.getLogger(__name__)

TEXT_FIELDS = {"audit_details", "observation"}
ENUM_FIELDS = {"remark": Remark}
# Accepted for any enum field to clear it
UNSET = "unset"
EDITABLE_FIELDS = TEXT_FIELDS | set(ENUM_FIELDS)

ChangeListener = Callable[[AuditItemState, AuditProgress], None]


def normalize_field_value(field: str, value: Any) -> Any:
    """
    Validate an edit and return the value to keep locally.

    Remarks must be one of the Remark values; None, "" or "unset" clears
    the remark.
    Text fields accept any string, including "".
    """
    if field not in EDITABLE_FIELDS:
        raise UnknownField(field)

    if field in ENUM_FIELDS:
        if value is None or value in ("", UNSET):
            return None
        enum = ENUM_FIELDS[field]
        try:
            return enum(value)
        except ValueError:
            allowed = [member.value for member in enum] + [UNSET]
            raise InvalidEnumValue(field, value, allowed) from None

    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidFieldValue(field, value, f"Field '{field}' expects text")
    return value


class AuditItemStore:
    """In-memory items of one audit with editability checks and change notification."""

    def __init__(
        self,
        audit_id: UUID,
        repository: AuditRepository,
        persister: DebouncedPersister,
        gate: SubmissionGate | None = None,
    ):
        self.audit_id = audit_id
        self.repository = repository
        self.persister = persister
        self.gate = gate or SubmissionGate(repository)

        self.title: str = ""
        self.status: str | None = None
        self.auditor_id: str | None = None
        self.columns: list[str] = []
        self._items: list[AuditItemState] = []
        self._by_id: dict[UUID, AuditItemState] = {}
        self.progress: AuditProgress = calculate_progress([])
        self._listeners: list[ChangeListener] = []

    @property
    def items(self) -> list[AuditItemState]:
        return list(self._items)

    @property
    def item_ids(self) -> list[UUID]:
        return [item.id for item in self._items]

    def get_item(self, item_id: UUID) -> AuditItemState:
        item = self._by_id.get(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        return item

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a change listener. Returns a function that removes it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def load(self) -> list[AuditItemState]:
        """
        Fetch the audit and its items and overwrite the working copy.

        Edits not yet flushed by the persister are lost when this runs.
        """
        audit = self.repository.get_audit(self.audit_id)
        items = self.repository.fetch_items(self.audit_id)

        self.title = audit.title
        self.status = audit.status
        self.auditor_id = audit.auditor_id
        self._items = items
        self._by_id = {item.id: item for item in items}
        # Column order comes from the first row only
        self.columns = list(items[0].original_data) if items else []
        self.progress = calculate_progress(self._items)

        logger.debug(f"Loaded audit {self.audit_id}: {len(items)} items, status {self.status}")
        return self.items

    def ensure_editable(self, user_id: str) -> None:
        """Raise unless the audit is in progress and the user is its auditor."""
        if self.status != AuditStatus.IN_PROGRESS.value:
            raise AuditNotEditable(self.audit_id, self.status or "unknown")
        if user_id != self.auditor_id:
            raise NotAuditAssignee(self.audit_id, user_id)

    def update_field(self, item_id: UUID, field: str, value: Any, *, user_id: str) -> AuditItemState:
        """Set one editable field of an item and schedule its write."""
        self.ensure_editable(user_id)
        item = self.get_item(item_id)
        normalized = normalize_field_value(field, value)

        setattr(item, field, normalized)
        stored = normalized.value if isinstance(normalized, Remark) else normalized
        self._changed(item, {field: stored, "last_modified_by": user_id})
        return item

    def add_evidence(self, item_id: UUID, evidence: EvidenceRef, *, user_id: str) -> AuditItemState:
        """
        Attach an evidence reference to an item.

        The metadata row is written by the caller before this is called;
        the scheduled write only records who touched the item. Adding a
        reference that is already attached does nothing.
        """
        self.ensure_editable(user_id)
        item = self.get_item(item_id)
        if any(existing.id == evidence.id for existing in item.evidence):
            return item

        item.evidence.append(evidence)
        self._changed(item, {"last_modified_by": user_id})
        return item

    def _changed(self, item: AuditItemState, changes: dict[str, Any]) -> None:
        self.progress = calculate_progress(self._items)
        self.persister.schedule(item.id, changes)
        for listener in list(self._listeners):
            listener(item, self.progress)

    async def save(self) -> list[UUID]:
        """Flush this audit's pending writes and retry its failed ones. Returns ids still failing."""
        item_ids = self.item_ids
        # Retrying also sends any newer pending edits of those items
        failed = set(await self.persister.retry_all(item_ids))
        failed |= set(await self.persister.flush_all(item_ids))
        return [item_id for item_id in item_ids if item_id in failed]

    async def submit(self, *, user_id: str) -> SubmissionResult:
        """
        Submit the audit.

        The checks run first on the working copy; pending edits are then
        flushed so the submitted record matches what the auditor sees.
        """
        self.ensure_editable(user_id)
        check_submission(self._items)

        # Edits can arrive while a save is awaited; repeat until none are left
        while True:
            failed = await self.save()
            if failed:
                failure = self.persister.failures[failed[0]]
                logger.warning(f"Not submitting audit {self.audit_id}: {len(failed)} items unsaved")
                raise failure
            if not self.persister.has_pending(self.item_ids):
                break

        # No await from here on, so nothing can be scheduled before the status changes
        result = self.gate.submit(self.audit_id, self._items)
        self.status = result.status
        return result
