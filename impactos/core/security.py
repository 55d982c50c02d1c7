"""Security utilities for password hashing and JWT token management."""

from datetime import UTC, datetime, timedelta
from uuid import UUID

import bcrypt
import jwt
from jwt import exceptions as jwt_exceptions

from impactos.core.config import get_settings

settings = get_settings()

SESSION_TOKEN_TYPE = "session"
EMAIL_CONFIRMATION_TOKEN_TYPE = "email_confirmation"

# bcrypt silently truncates longer inputs
_MAX_PASSWORD_BYTES = 72


class PasswordValidationError(ValueError):
    """Raised when password validation fails."""

    pass


def validate_password(password: str) -> None:
    """Validate password meets the signup requirements.

    Args:
        password: Plain text password to validate

    Raises:
        PasswordValidationError: If password does not meet requirements
    """
    if len(password) < settings.min_password_length:
        raise PasswordValidationError(
            f"Password must be at least {settings.min_password_length} characters"
        )

    if not password.strip():
        raise PasswordValidationError("Password cannot be blank")

    if len(password.encode("utf-8")) > _MAX_PASSWORD_BYTES:
        raise PasswordValidationError("Password is too long")


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password string
    """
    password_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password_bytes, salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def _encode(claims: dict, token_type: str, expires_delta: timedelta) -> str:
    to_encode = claims.copy()
    now = datetime.now(UTC)
    # Sub-second iat so a sign-out revokes tokens issued in the same second
    to_encode.update({"type": token_type, "iat": now.timestamp(), "exp": now + expires_delta})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_session_token(account_id: UUID, email: str, expires_delta: timedelta | None = None) -> str:
    """Create a signed session token for an identity account.

    Args:
        account_id: Identity account (and user profile) ID
        email: Account email, echoed as a claim for convenience
        expires_delta: Optional custom lifetime

    Returns:
        Encoded JWT token string
    """
    lifetime = expires_delta or timedelta(minutes=settings.session_token_expire_minutes)
    return _encode({"sub": str(account_id), "email": email}, SESSION_TOKEN_TYPE, lifetime)


def create_email_confirmation_token(account_id: UUID) -> str:
    """Create the single-purpose token embedded in confirmation links."""
    lifetime = timedelta(hours=settings.email_confirmation_expire_hours)
    return _encode({"sub": str(account_id)}, EMAIL_CONFIRMATION_TOKEN_TYPE, lifetime)


def decode_token(token: str, expected_type: str = SESSION_TOKEN_TYPE) -> dict | None:
    """Decode and validate a JWT token.

    Args:
        token: JWT token string to decode
        expected_type: Required value of the ``type`` claim

    Returns:
        Decoded token payload if valid, None otherwise
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt_exceptions.PyJWTError:
        return None
    if payload.get("type") != expected_type:
        return None
    return payload
