"""Audit model: one checklist applied to a site on a date.

An audit owns a fixed set of items created atomically with it when a
checklist upload is imported. Its status only moves forward; the audit
engine handles ``in_progress -> submitted`` and leaves the later review
states to an external workflow.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.audit_item import AuditItem
    from app.models.template import Template


class AuditStatus(str, Enum):
    """Lifecycle states of an audit."""

    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    REVIEWED = "reviewed"
    APPROVED = "approved"


class Audit(SQLModel, table=True):
    """An instance of a checklist being filled out.

    Attributes:
        id: Unique identifier (UUID).
        template_id: Foreign key to the Template the audit was created from.
        title: Display title ("Audit - <checklist name>").
        auditor_id: Opaque id of the assigned auditor. Only this user may
            edit items or submit the audit.
        status: One of the AuditStatus values, stored as text.
            Every audit starts "in_progress".
        created_at: When the audit was created.
        submitted_at: When the audit moved to "submitted", if it has.
        template: Reference to the parent Template.
        items: The checklist rows of this audit.
    """
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    template_id: UUID = Field(foreign_key="template.id")
    title: str
    auditor_id: str = Field(index=True)
    status: str = Field(default=AuditStatus.IN_PROGRESS.value)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC), index=True)
    submitted_at: datetime | None = None

    # Relationships
    template: Optional["Template"] = Relationship(back_populates="audits")
    items: list["AuditItem"] = Relationship(back_populates="audit")
