"""User profile model."""
from sqlalchemy import Column, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from impactos.models.base import TimestampMixin, Base


class User(TimestampMixin, Base):
    """Application-level profile of an identity account.

    Rows are created by the ``after_insert`` hook on ``IdentityAccount`` and
    share its id; deleting the account removes the profile, its memberships
    and its session record.
    """

    __tablename__ = "users"

    id = Column(
        Uuid(as_uuid=True),
        ForeignKey("identity_accounts.id", ondelete="CASCADE"),
        primary_key=True,
    )
    email = Column(String(255), nullable=False, index=True)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    # Single-tenant era reference; membership rows are authoritative.
    default_organization_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
    )

    memberships = relationship(
        "OrganizationMember",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.email

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
