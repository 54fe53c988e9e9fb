"""Checklist template model.

A template is the reusable definition an audit was created from. Uploaded
spreadsheets produce one template per upload whose ``structure`` holds the
parsed rows exactly as they were read. The audit workflow only reads
templates; it never changes them.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.audit import Audit


class Template(SQLModel, table=True):
    """A checklist definition consumed when an audit is created.

    Attributes:
        id: Unique identifier (UUID).
        title: Display title, derived from the uploaded file name.
        description: Free text describing where the checklist came from.
        structure: The parsed sheet rows, one mapping of column header to
            cell value per row.
        created_by: Opaque id of the user who uploaded the checklist.
        created_at: When the template was stored.
        audits: Audits created from this template.
    """
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    title: str
    description: str = ""
    structure: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    created_by: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Relationship
    audits: list["Audit"] = Relationship(back_populates="template")
