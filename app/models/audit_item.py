"""Audit item model for the rows of an imported checklist.

Each item keeps the raw spreadsheet row it was created from alongside the
fields the auditor fills in. The raw row and the row position never change
after import.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.audit import Audit
    from app.models.evidence import Evidence


class Remark(str, Enum):
    """The auditor's finding for one checklist row. Unset is stored as NULL."""

    YES = "yes"
    NO = "no"
    NOT_APPLICABLE = "not_applicable"
    UNAVAILABLE = "unavailable"

    @property
    def label(self) -> str:
        return REMARK_LABELS[self]


REMARK_LABELS = {
    Remark.YES: "Yes",
    Remark.NO: "No",
    Remark.NOT_APPLICABLE: "Not Applicable",
    Remark.UNAVAILABLE: "Unavailable",
}


class AuditItem(SQLModel, table=True):
    """One checklist row within an audit.

    Attributes:
        id: Unique identifier (UUID).
        audit_id: Foreign key to the parent Audit.
        row_index: Position of the row in the uploaded sheet, used for ordering.
        original_data: The sheet row, column header -> cell value. Cells that
            were empty in the sheet are absent rather than null.
        audit_details: "Details of audit" free text entered by the auditor.
        observation: Auditor's observation free text.
        remark: One of the Remark values, or None while unset.
        last_modified_by: Opaque id of the last user who changed the row.
        updated_at: When the row was last written.
        audit: Reference to the parent Audit.
        evidence: Files attached to support the finding.
    """
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    audit_id: UUID = Field(foreign_key="audit.id", index=True)
    row_index: int
    original_data: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    audit_details: str = ""
    observation: str = ""
    remark: str | None = None
    last_modified_by: str | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Relationships
    audit: Optional["Audit"] = Relationship(back_populates="items")
    evidence: list["Evidence"] = Relationship(back_populates="item")
