"""Identity provider collaborator.

The rest of the application only talks to the narrow ``IdentityProvider``
interface: accounts, passwords and session tokens live behind it. The shipped
``LocalIdentityProvider`` keeps credentials in ``identity_accounts`` and
issues JWT session tokens; each new account is mirrored into the ``users``
profile table by an ORM insert hook.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from impactos.core.errors import (
    ConstraintViolation,
    EmailNotConfirmed,
    InvalidToken,
    Unauthenticated,
    ValidationFailed,
)
from impactos.core.security import (
    EMAIL_CONFIRMATION_TOKEN_TYPE,
    PasswordValidationError,
    create_email_confirmation_token,
    create_session_token,
    decode_token,
    hash_password,
    validate_password,
    verify_password,
)
from impactos.core.structured_logging import log_json
from impactos.models.base import as_utc
from impactos.models.identity_account import IdentityAccount

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _revoked(payload: dict, account: IdentityAccount) -> bool:
    revoked_at = as_utc(account.sessions_revoked_at)
    if revoked_at is None:
        return False
    issued_at = payload.get("iat")
    return not isinstance(issued_at, (int, float)) or issued_at <= revoked_at.timestamp()


@dataclass(frozen=True)
class IdentitySession:
    """A live authenticated session."""

    user_id: UUID
    email: str
    access_token: str
    expires_at: datetime | None = None


@dataclass(frozen=True)
class SignUpResult:
    user_id: UUID
    email: str
    confirmation_token: str


class IdentityProvider(ABC):
    """Operations the application needs from the identity provider."""

    @abstractmethod
    async def sign_up(
        self, email: str, password: str, first_name: str = "", last_name: str = ""
    ) -> SignUpResult:
        """Create an unconfirmed account and return its confirmation token."""

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> IdentitySession:
        """Verify credentials of a confirmed account and open a session."""

    @abstractmethod
    async def sign_out(self, access_token: str) -> None:
        """End the session behind ``access_token``.

        Tokens issued to the same account before this call stop being
        accepted by ``get_session``; invalid tokens are ignored.
        """

    @abstractmethod
    async def create_user_pre_confirmed(
        self, email: str, password: str, first_name: str = "", last_name: str = ""
    ) -> UUID:
        """Create an account whose email counts as confirmed (invitation signup)."""

    @abstractmethod
    async def delete_user(self, user_id: UUID) -> None:
        """Delete an account; its profile and memberships go with it."""

    @abstractmethod
    async def get_session(self, access_token: str | None) -> IdentitySession | None:
        """Return the live session for a token, or None."""

    @abstractmethod
    async def confirm_email(self, confirmation_token: str) -> IdentitySession:
        """Mark the account's email confirmed and open a session."""


class LocalIdentityProvider(IdentityProvider):
    """Identity provider backed by the ``identity_accounts`` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_by_email(self, email: str) -> IdentityAccount | None:
        result = await self.db.execute(
            select(IdentityAccount).where(func.lower(IdentityAccount.email) == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def _create_account(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        confirmed: bool,
    ) -> IdentityAccount:
        try:
            validate_password(password)
        except PasswordValidationError as e:
            raise ValidationFailed(str(e), details={"field": "password"}) from e

        email = normalize_email(email)
        if await self._get_by_email(email) is not None:
            raise ConstraintViolation("An account with this email already exists")

        account = IdentityAccount(
            email=email,
            password_hash=hash_password(password),
            email_confirmed_at=datetime.now(UTC) if confirmed else None,
        )
        account.profile_first_name = first_name.strip()
        account.profile_last_name = last_name.strip()

        try:
            async with self.db.begin_nested():
                self.db.add(account)
        except IntegrityError as e:
            raise ConstraintViolation("An account with this email already exists") from e
        return account

    def _open_session(self, account: IdentityAccount) -> IdentitySession:
        token = create_session_token(account.id, account.email)
        payload = decode_token(token) or {}
        exp = payload.get("exp")
        return IdentitySession(
            user_id=account.id,
            email=account.email,
            access_token=token,
            expires_at=datetime.fromtimestamp(exp, UTC) if exp else None,
        )

    async def sign_up(
        self, email: str, password: str, first_name: str = "", last_name: str = ""
    ) -> SignUpResult:
        account = await self._create_account(email, password, first_name, last_name, confirmed=False)
        log_json(logger, logging.INFO, "account_signed_up", account_id=str(account.id))
        return SignUpResult(
            user_id=account.id,
            email=account.email,
            confirmation_token=create_email_confirmation_token(account.id),
        )

    async def sign_in(self, email: str, password: str) -> IdentitySession:
        account = await self._get_by_email(email)
        # Same message for unknown email and wrong password
        if account is None or not verify_password(password, account.password_hash):
            raise Unauthenticated("Invalid email or password")
        if not account.is_confirmed:
            raise EmailNotConfirmed()

        account.last_sign_in_at = datetime.now(UTC)
        await self.db.flush()
        return self._open_session(account)

    async def sign_out(self, access_token: str) -> None:
        # Revokes every token of the account issued up to now
        payload = decode_token(access_token)
        if payload is None or not payload.get("sub"):
            return
        try:
            account_id = UUID(payload["sub"])
        except ValueError:
            return

        account = await self.db.get(IdentityAccount, account_id)
        if account is None:
            return
        account.sessions_revoked_at = datetime.now(UTC)
        await self.db.flush()
        log_json(logger, logging.INFO, "account_signed_out", account_id=str(account.id))

    async def create_user_pre_confirmed(
        self, email: str, password: str, first_name: str = "", last_name: str = ""
    ) -> UUID:
        account = await self._create_account(email, password, first_name, last_name, confirmed=True)
        return account.id

    async def delete_user(self, user_id: UUID) -> None:
        await self.db.execute(delete(IdentityAccount).where(IdentityAccount.id == user_id))
        log_json(logger, logging.INFO, "account_deleted", account_id=str(user_id))

    async def get_session(self, access_token: str | None) -> IdentitySession | None:
        if not access_token:
            return None
        payload = decode_token(access_token)
        if payload is None or not payload.get("sub"):
            return None
        try:
            account_id = UUID(payload["sub"])
        except ValueError:
            return None

        account = await self.db.get(IdentityAccount, account_id)
        if account is None or not account.is_confirmed:
            return None
        if _revoked(payload, account):
            return None
        exp = payload.get("exp")
        return IdentitySession(
            user_id=account.id,
            email=account.email,
            access_token=access_token,
            expires_at=datetime.fromtimestamp(exp, UTC) if exp else None,
        )

    async def confirm_email(self, confirmation_token: str) -> IdentitySession:
        payload = decode_token(confirmation_token, expected_type=EMAIL_CONFIRMATION_TOKEN_TYPE)
        if payload is None or not payload.get("sub"):
            raise InvalidToken("Invalid or expired confirmation link")
        try:
            account_id = UUID(payload["sub"])
        except ValueError as e:
            raise InvalidToken("Invalid or expired confirmation link") from e

        account = await self.db.get(IdentityAccount, account_id)
        if account is None:
            raise InvalidToken("Invalid or expired confirmation link")

        if account.email_confirmed_at is None:
            account.email_confirmed_at = datetime.now(UTC)
            await self.db.flush()
            log_json(logger, logging.INFO, "account_email_confirmed", account_id=str(account.id))
        return self._open_session(account)
