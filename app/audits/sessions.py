"""Registry of open audits sharing one persister and one submission gate."""
import logging
from typing import Any
from uuid import UUID

from apscheduler.schedulers.base import BaseScheduler
from fastapi.concurrency import run_in_threadpool

from app.audits.persister import DebouncedPersister
from app.audits.repository import AuditRepository
from app.audits.schemas import SaveStatus
from app.audits.store import AuditItemStore
from app.audits.submission import SubmissionGate
from app.core.config import settings
from app.core.database import engine
from app.core.scheduler import scheduler

logger = logging.getLogger(__name__)


class AuditSessions:
    """
    Keeps one AuditItemStore per audit id.

    Opening an audit reconciles it with the record store, except while the
    audit still has writes pending or failed: a reload then would throw those
    edits away, so it is skipped.
    """

    def __init__(
        self,
        repository: AuditRepository,
        scheduler: BaseScheduler,
        window_seconds: float = 1.0,
    ):
        self.repository = repository
        self.persister = DebouncedPersister(self._write_item, scheduler, window_seconds)
        self.gate = SubmissionGate(repository)
        self._stores: dict[UUID, AuditItemStore] = {}

    async def _write_item(self, item_id: UUID, changes: dict[str, Any]) -> None:
        await run_in_threadpool(self.repository.update_item_fields, item_id, changes)

    def open(self, audit_id: UUID) -> AuditItemStore:
        """Return the audit's store, reloaded from the record store when safe."""
        store = self._stores.get(audit_id)
        if store is None:
            store = AuditItemStore(audit_id, self.repository, self.persister, self.gate)
            store.load()
            self._stores[audit_id] = store
        elif self.persister.has_unsaved(store.item_ids):
            # Pending and failed writes both hold edits the record store does not have yet
            logger.warning(f"Audit {audit_id} has unsaved edits, serving the working copy")
        else:
            store.load()
        return store

    def get(self, audit_id: UUID) -> AuditItemStore:
        """Return the audit's store, loading it only if it is not open yet."""
        store = self._stores.get(audit_id)
        if store is None:
            return self.open(audit_id)
        return store

    def save_status(self, store: AuditItemStore) -> SaveStatus:
        item_ids = set(store.item_ids)
        return SaveStatus(
            pending=[item_id for item_id in self.persister.pending_items() if item_id in item_ids],
            failed={
                str(item_id): str(failure)
                for item_id, failure in self.persister.failures.items()
                if item_id in item_ids
            },
        )

    async def close(self) -> None:
        """Write everything still pending."""
        failed = await self.persister.flush_all()
        if failed:
            logger.error(f"{len(failed)} item writes failed during shutdown")


audit_sessions = AuditSessions(
    AuditRepository(engine),
    scheduler,
    window_seconds=settings.save_debounce_seconds,
)


def get_audit_sessions() -> AuditSessions:
    """Dependency for the shared audit session registry."""
    return audit_sessions
