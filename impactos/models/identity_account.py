"""Identity account model (owned by the identity provider)."""
from sqlalchemy import Column, DateTime, String, event, insert

from impactos.models.base import BaseModel, utcnow


class IdentityAccount(BaseModel):
    """Credentials of a principal.

    Only ``LocalIdentityProvider`` reads or writes this table. The rest of
    the application works with the mirrored ``users`` profile row, which
    shares the same id.

    The transient ``profile_first_name`` / ``profile_last_name`` /
    ``profile_default_organization_id`` attributes are not columns; they are
    handed to the profile mirror on insert.
    """

    __tablename__ = "identity_accounts"

    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    email_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    last_sign_in_at = Column(DateTime(timezone=True), nullable=True)
    # Session tokens issued at or before this instant are rejected
    sessions_revoked_at = Column(DateTime(timezone=True), nullable=True)

    profile_first_name = ""
    profile_last_name = ""
    profile_default_organization_id = None

    @property
    def is_confirmed(self) -> bool:
        return self.email_confirmed_at is not None

    def __repr__(self) -> str:
        return f"<IdentityAccount(id={self.id}, email={self.email})>"


@event.listens_for(IdentityAccount, "after_insert")
def _mirror_profile(mapper, connection, account: IdentityAccount) -> None:
    """Create the application profile row for a new account."""
    from impactos.models.user import User

    now = utcnow()
    connection.execute(
        insert(User.__table__).values(
            id=account.id,
            email=account.email,
            first_name=account.profile_first_name or "",
            last_name=account.profile_last_name or "",
            default_organization_id=account.profile_default_organization_id,
            created_at=now,
            updated_at=now,
        )
    )
