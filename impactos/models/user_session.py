"""Active-organization session record."""
from sqlalchemy import Column, DateTime, ForeignKey, Uuid

from impactos.models.base import Base, utcnow


class UserSession(Base):
    """One row per user naming the organization they currently act in.

    This is what the ``get_active_organization_id()`` SQL function behind the
    row-level-security policies reads. The ``active_organization_id`` cookie
    only ever mirrors it.
    """

    __tablename__ = "user_sessions"

    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    active_organization_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    last_switched_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    # Refreshed by the resolver, at most once a day
    last_used_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return (
            f"<UserSession(user_id={self.user_id}, "
            f"active_organization_id={self.active_organization_id})>"
        )
