"""Local filesystem object store for evidence files."""
import logging
import time
from pathlib import Path
from uuid import UUID, uuid4

from app.audits.errors import EvidenceNotFound, PersistenceFailure
from app.core.config import settings

logger = logging.getLogger(__name__)

EVIDENCE_PREFIX = "evidence"


def build_evidence_path(item_id: UUID, file_name: str, timestamp_ms: int | None = None) -> str:
    """
    Storage path for a new evidence file: evidence/<item_id>-<epoch ms>-<token>.<ext>.

    The random token keeps two uploads in the same millisecond apart.
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    suffix = Path(file_name).suffix.lower()
    token = uuid4().hex[:8]
    return f"{EVIDENCE_PREFIX}/{item_id}-{timestamp_ms}-{token}{suffix}"


class EvidenceStorage:
    """Blob store addressed by relative path strings under a root directory."""

    def __init__(self, root: Path | str):
        self.root = Path(root).expanduser().resolve()

    def resolve(self, path: str) -> Path:
        """Map a stored path to its file, refusing paths outside the root."""
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root):
            raise EvidenceNotFound(path)
        return target

    def exists(self, path: str) -> bool:
        try:
            return self.resolve(path).is_file()
        except EvidenceNotFound:
            return False

    def put(self, path: str, data: bytes) -> str:
        target = self.resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            logger.error(f"Storing evidence at {path} failed: {e}")
            raise PersistenceFailure(f"store evidence {path}", str(e)) from e
        logger.info(f"Stored evidence {path} ({len(data)} bytes)")
        return path


def get_evidence_storage() -> EvidenceStorage:
    """Dependency for the configured evidence store."""
    return EvidenceStorage(settings.evidence_dir)
