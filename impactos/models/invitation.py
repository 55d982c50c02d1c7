"""Invitation model."""
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from impactos.models.base import BaseModel, as_utc
from impactos.models.enums import InvitationStatus, MemberRole


class Invitation(BaseModel):
    """Invitation for an email address to join an organization at a role.

    Each invitation has a unique random token, expires after a fixed number of
    days and can only be used once: ``accepted_at`` goes from NULL to a
    timestamp exactly once. Expiry is derived from ``expires_at``, never
    stored as a state.
    """

    __tablename__ = "organization_invitations"

    token = Column(String(255), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    organization_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role = Column(
        SQLEnum(
            MemberRole,
            name="member_role",
            native_enum=False,
            length=20,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    invited_by = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)

    organization = relationship("Organization", back_populates="invitations")

    def status_at(self, now: datetime) -> InvitationStatus:
        if self.accepted_at is not None:
            return InvitationStatus.ACCEPTED
        if as_utc(self.expires_at) < now:
            return InvitationStatus.EXPIRED
        return InvitationStatus.PENDING

    def __repr__(self) -> str:
        return (
            f"<Invitation(id={self.id}, email={self.email}, "
            f"organization_id={self.organization_id})>"
        )
