"""Saved report model."""
from sqlalchemy import Column, ForeignKey, String, Text, Uuid

from impactos.models.base import BaseModel


class Report(BaseModel):
    """A generated compliance/portfolio report stored as markdown."""

    __tablename__ = "reports"

    organization_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False, default="")
    created_by = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Report(id={self.id}, title={self.title})>"
