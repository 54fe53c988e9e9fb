"""Evidence model: metadata for a file attached to an audit item.

The file bytes live in the evidence object store; this row only records
where they were put and who put them there.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.audit_item import AuditItem


class Evidence(SQLModel, table=True):
    """A file uploaded to support an item's finding.

    Attributes:
        id: Unique identifier (UUID).
        audit_item_id: Foreign key to the AuditItem the file belongs to.
        file_name: Name of the file as uploaded by the user.
        file_path: Path of the stored blob inside the evidence store.
        file_type: Content type reported by the client, if any.
        uploaded_by: Opaque id of the uploading user.
        uploaded_at: When the metadata row was written.
        item: Reference to the parent AuditItem.
    """
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    audit_item_id: UUID = Field(foreign_key="audititem.id", index=True)
    file_name: str
    file_path: str
    file_type: str | None = None
    uploaded_by: str | None = None
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Relationship
    item: Optional["AuditItem"] = Relationship(back_populates="evidence")
