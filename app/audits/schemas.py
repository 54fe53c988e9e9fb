"""In-memory and response shapes used by the audit engine.

These are plain SQLModel (non-table) models: the working copy of an audit
that ``AuditItemStore`` holds, and the payloads the routes return.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlmodel import Field, SQLModel

from app.models import Audit, Remark

# A spreadsheet cell. Dates are carried as ISO text.
CellValue = str | int | float | bool | None


class CellKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    EMPTY = "empty"


def cell_kind(value: CellValue) -> CellKind:
    """Classify a cell value. ``bool`` is checked before numbers since it subclasses int."""
    if value is None or value == "":
        return CellKind.EMPTY
    if isinstance(value, bool):
        return CellKind.BOOLEAN
    if isinstance(value, int | float):
        return CellKind.NUMBER
    return CellKind.TEXT


def display_text(value: CellValue) -> str:
    """Render a cell the way the checklist table shows it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ParsedSheet(SQLModel):
    """Rows read from the first sheet of an uploaded file.

    ``columns`` comes from the first record only. ``irregular_rows`` lists
    the record indexes whose keys differ from it.
    """
    sheet_name: str
    columns: list[str] = Field(default_factory=list)
    records: list[dict[str, CellValue]] = Field(default_factory=list)
    irregular_rows: list[int] = Field(default_factory=list)


class EvidenceRef(SQLModel):
    id: UUID
    file_name: str
    file_path: str


class AuditItemState(SQLModel):
    """Working copy of one audit item."""
    id: UUID
    row_index: int
    original_data: dict[str, CellValue] = Field(default_factory=dict)
    audit_details: str = ""
    observation: str = ""
    remark: Remark | None = None
    evidence: list[EvidenceRef] = Field(default_factory=list)


class AuditProgress(SQLModel):
    total: int = 0
    completed: int = 0
    issues: int = 0
    evidence_count: int = 0
    completion_percent: int = 0


class AuditSummary(SQLModel):
    id: UUID
    title: str
    status: str
    auditor_id: str
    template_id: UUID
    created_at: datetime
    submitted_at: datetime | None = None

    @classmethod
    def from_audit(cls, audit: Audit) -> "AuditSummary":
        return cls(
            id=audit.id,
            title=audit.title,
            status=audit.status,
            auditor_id=audit.auditor_id,
            template_id=audit.template_id,
            created_at=audit.created_at,
            submitted_at=audit.submitted_at,
        )


class ImportResult(SQLModel):
    audit_id: UUID
    template_id: UUID
    title: str
    item_count: int
    columns: list[str]
    irregular_rows: list[int] = Field(default_factory=list)


class SubmissionResult(SQLModel):
    audit_id: UUID
    status: str
    submitted_at: datetime | None
    progress: AuditProgress


class SaveStatus(SQLModel):
    pending: list[UUID] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)


class AuditDetail(SQLModel):
    audit: AuditSummary
    columns: list[str]
    items: list[AuditItemState]
    progress: AuditProgress
    can_submit: bool
    blocked_by: str | None = None
    save_status: SaveStatus
