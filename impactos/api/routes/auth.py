"""Authentication endpoints for signup, login and logout."""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from impactos.api.deps import (
    clear_auth_cookies,
    get_access_token,
    get_current_user,
    get_identity_provider,
    get_mailer,
    set_session_cookie,
)
from impactos.core.config import get_settings
from impactos.core.errors import EmailDeliveryFailed
from impactos.core.database import get_db
from impactos.core.redirects import get_safe_redirect_url
from impactos.models.user import User
from impactos.schemas.auth import (
    LoginRequest,
    LogoutResponse,
    SignupRequest,
    SignupResponse,
    TokenResponse,
)
from impactos.services.email_service import EmailSender, render_confirmation_email
from impactos.services.identity_provider import IdentityProvider

settings = get_settings()
router = APIRouter()


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    signup_data: SignupRequest,
    db: AsyncSession = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
    mailer: EmailSender = Depends(get_mailer),
):
    """Create an unconfirmed account and email the confirmation link.

    The account has no organization yet; after confirming, the user lands
    on onboarding to create one (or accepts an invitation).

    Raises:
        ValidationFailed: Password rejected
        ConstraintViolation: Email already registered
        EmailDeliveryFailed: Confirmation email could not be sent
    """
    result = await identity.sign_up(
        email=signup_data.email,
        password=signup_data.password,
        first_name=signup_data.first_name,
        last_name=signup_data.last_name,
    )
    confirm_url = f"{settings.app_url.rstrip('/')}/auth/confirm?token={result.confirmation_token}"
    # The account is committed before its confirmation link is sent
    await db.commit()
    try:
        await mailer.send(render_confirmation_email(to=result.email, confirm_url=confirm_url))
    except EmailDeliveryFailed:
        await identity.delete_user(result.user_id)
        await db.commit()
        raise

    return SignupResponse(email=result.email)


@router.post("/login", response_model=TokenResponse, status_code=status.HTTP_200_OK)
async def login(
    login_data: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    """User login endpoint.

    Returns the session token and also sets it as an httpOnly cookie.
    ``redirect_to`` is the requested ``next`` path when it is a safe internal
    path, ``/dashboard`` otherwise.

    Raises:
        Unauthenticated: Invalid email or password
        EmailNotConfirmed: Email not confirmed yet
    """
    session = await identity.sign_in(login_data.email, login_data.password)
    set_session_cookie(response, session.access_token)

    await db.commit()

    return TokenResponse(
        access_token=session.access_token,
        token_type="bearer",
        expires_in=settings.session_token_expire_minutes * 60,
        redirect_to=get_safe_redirect_url(login_data.next, "/dashboard"),
    )


@router.post("/logout", response_model=LogoutResponse, status_code=status.HTTP_200_OK)
async def logout(
    response: Response,
    current_user: User = Depends(get_current_user),
    token: str | None = Depends(get_access_token),
    db: AsyncSession = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    """Sign out and clear the session and active-organization cookies."""
    if token:
        await identity.sign_out(token)
        await db.commit()
    clear_auth_cookies(response)
    return LogoutResponse(message="Logged out successfully")
