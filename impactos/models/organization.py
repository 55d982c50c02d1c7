"""Organization model."""
from sqlalchemy import CheckConstraint, Column, String
from sqlalchemy.orm import relationship

from impactos.models.base import BaseModel


class Organization(BaseModel):
    """Organization entity representing one accelerator or incubator.

    An organization is the tenant: every domain record carries its id and is
    removed with it through ``ON DELETE CASCADE``.
    """

    __tablename__ = "organizations"

    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True, index=True)

    # Relationships (passive: the database cascade does the deleting)
    members = relationship(
        "OrganizationMember",
        back_populates="organization",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    invitations = relationship(
        "Invitation",
        back_populates="organization",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    config = relationship(
        "TenantConfig",
        back_populates="organization",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("LENGTH(name) >= 2", name="organization_name_min_length"),
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, slug={self.slug})>"
