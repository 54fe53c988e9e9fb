"""Debounced, per-item coalescing of audit item writes.

Edits arrive one keystroke at a time. Instead of writing each one, the
changes for an item are merged into a pending buffer and a single timer job
keyed by the item id is (re)armed on the scheduler. When the item has been
quiet for the whole window the timer fires and the buffer is written in one
call.

    schedule(item, {"observation": "Lea"})    -> buffer {observation: "Lea"}, timer armed
    schedule(item, {"observation": "Leak"})   -> buffer {observation: "Leak"}, timer re-armed
    ... window elapses ...                    -> one write {observation: "Leak"}

Writes for different items are independent. A failed write is reported to
the error handlers and kept aside; it is not retried on its own. The next
edit to the same item carries it along, or ``retry`` re-sends it.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.date import DateTrigger

from app.audits.errors import AuditEngineError, PersistenceFailure

logger = logging.getLogger(__name__)

Writer = Callable[[UUID, dict[str, Any]], Awaitable[None]]
ErrorHandler = Callable[[UUID, PersistenceFailure], None]


class DebouncedPersister:
    """Coalesces rapid item edits into one write per item per quiet window."""

    def __init__(
        self,
        writer: Writer,
        scheduler: BaseScheduler,
        window_seconds: float = 1.0,
    ):
        self._writer = writer
        self._scheduler = scheduler
        self.window_seconds = window_seconds
        self._pending: dict[UUID, dict[str, Any]] = {}
        self._failed_changes: dict[UUID, dict[str, Any]] = {}
        self._locks: dict[UUID, asyncio.Lock] = {}
        self._lock_users: dict[UUID, int] = {}
        self._error_handlers: list[ErrorHandler] = []
        self.failures: dict[UUID, PersistenceFailure] = {}

    @staticmethod
    def job_id(item_id: UUID) -> str:
        return f"save-item-{item_id}"

    def add_error_handler(self, handler: ErrorHandler) -> None:
        self._error_handlers.append(handler)

    def schedule(self, item_id: UUID, changes: dict[str, Any]) -> None:
        """Merge changes into the item's pending write and restart its timer."""
        pending = self._pending.setdefault(item_id, {})
        failed = self._failed_changes.pop(item_id, None)
        if failed:
            # Carry the unsaved values of an earlier failed write along
            pending.update({k: v for k, v in failed.items() if k not in pending})
        pending.update(changes)
        self._arm_timer(item_id)

    def has_pending(self, item_ids: Iterable[UUID] | None = None) -> bool:
        if item_ids is None:
            return bool(self._pending)
        return any(item_id in self._pending for item_id in item_ids)

    def has_unsaved(self, item_ids: Iterable[UUID]) -> bool:
        """True if any of the items has a pending write or a failed one not yet re-sent."""
        return any(
            item_id in self._pending or item_id in self.failures for item_id in item_ids
        )

    def writes_in_flight(self) -> list[UUID]:
        """Items with a write running or waiting for the previous one."""
        return list(self._locks)

    def pending_items(self) -> list[UUID]:
        return list(self._pending)

    def pending_changes(self, item_id: UUID) -> dict[str, Any]:
        return dict(self._pending.get(item_id, {}))

    def _arm_timer(self, item_id: UUID) -> None:
        self._cancel_timer(item_id)
        self._scheduler.add_job(
            self.flush,
            trigger=DateTrigger(
                run_date=datetime.now(UTC) + timedelta(seconds=self.window_seconds)
            ),
            args=[item_id],
            id=self.job_id(item_id),
            misfire_grace_time=None,
        )

    def _cancel_timer(self, item_id: UUID) -> None:
        try:
            self._scheduler.remove_job(self.job_id(item_id))
        except JobLookupError:
            pass

    async def flush(self, item_id: UUID) -> bool:
        """
        Write the item's pending changes now.

        Returns False if the write failed. At most one write per item is in
        flight; a flush that arrives while another is running waits for it.
        Edits scheduled while the write ran get a fresh timer afterwards,
        since the scheduler skips a timer that fires during a running write.
        """
        self._cancel_timer(item_id)
        changes = self._pending.pop(item_id, None)
        if not changes:
            return item_id not in self.failures

        try:
            saved = await self._write(item_id, changes)
        finally:
            if item_id in self._pending and self._scheduler.get_job(self.job_id(item_id)) is None:
                self._arm_timer(item_id)
        if not saved:
            return False

        # A write that failed while this one was queued may still hold other fields
        failed = self._failed_changes.get(item_id)
        if failed is not None:
            for key in changes:
                failed.pop(key, None)
            if not failed:
                del self._failed_changes[item_id]
        if item_id not in self._failed_changes:
            self.failures.pop(item_id, None)

        logger.debug(f"Saved item {item_id}: {sorted(changes)}")
        return True

    async def _write(self, item_id: UUID, changes: dict[str, Any]) -> bool:
        lock = self._locks.setdefault(item_id, asyncio.Lock())
        self._lock_users[item_id] = self._lock_users.get(item_id, 0) + 1
        try:
            async with lock:
                try:
                    await self._writer(item_id, changes)
                except Exception as e:
                    self._record_failure(item_id, changes, e)
                    return False
                return True
        finally:
            self._lock_users[item_id] -= 1
            if not self._lock_users[item_id]:
                # Nobody is writing or waiting to write this item any more
                del self._lock_users[item_id]
                del self._locks[item_id]

    async def flush_all(self, item_ids: Iterable[UUID] | None = None) -> list[UUID]:
        """Flush pending writes (all, or for the given items). Returns the ids that failed."""
        targets = list(self._pending) if item_ids is None else [
            item_id for item_id in item_ids if item_id in self._pending
        ]
        results = await asyncio.gather(*(self.flush(item_id) for item_id in targets))
        return [item_id for item_id, ok in zip(targets, results) if not ok]

    async def retry(self, item_id: UUID) -> bool:
        """Re-send the changes of a failed write, merged under any newer pending edits."""
        failed = self._failed_changes.pop(item_id, None)
        if failed:
            self._pending[item_id] = {**failed, **self._pending.get(item_id, {})}
        return await self.flush(item_id)

    async def retry_all(self, item_ids: Iterable[UUID] | None = None) -> list[UUID]:
        """Retry failed writes (all, or for the given items). Returns the ids still failing."""
        targets = list(self.failures) if item_ids is None else [
            item_id for item_id in item_ids if item_id in self.failures
        ]
        results = await asyncio.gather(*(self.retry(item_id) for item_id in targets))
        return [item_id for item_id, ok in zip(targets, results) if not ok]

    def _record_failure(self, item_id: UUID, changes: dict[str, Any], error: Exception) -> None:
        if isinstance(error, PersistenceFailure):
            failure = error
        else:
            if not isinstance(error, AuditEngineError):
                logger.exception(f"Unexpected error while saving item {item_id}")
            failure = PersistenceFailure(f"save item {item_id}", str(error) or type(error).__name__)

        # Newer values from a later failed write win over older ones
        self._failed_changes[item_id] = {**self._failed_changes.get(item_id, {}), **changes}
        self.failures[item_id] = failure
        logger.error(f"Saving item {item_id} failed, changes kept locally: {failure}")

        for handler in self._error_handlers:
            handler(item_id, failure)
