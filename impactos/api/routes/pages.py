"""Browser-facing routes: email confirmation, login reasons, org switching.

These answer navigations rather than API calls, so they respond with
redirects and set cookies on the redirect itself.
"""

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from impactos.api.deps import (
    get_current_user,
    get_identity_provider,
    set_active_org_cookie,
    set_session_cookie,
)
from impactos.core.database import get_db
from impactos.core.errors import Forbidden, InvalidToken, login_error_message
from impactos.core.redirects import get_safe_redirect_url
from impactos.core.structured_logging import log_json
from impactos.models.user import User
from impactos.schemas.auth import LoginPageResponse
from impactos.services.identity_provider import IdentityProvider
from impactos.services.session_service import SessionService, parse_organization_id

logger = logging.getLogger(__name__)
router = APIRouter()


def _login_redirect(reason: str) -> RedirectResponse:
    return RedirectResponse(
        url=f"/login?{urlencode({'error': reason})}",
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    )


@router.get("/auth/confirm", include_in_schema=False)
async def confirm_email(
    token: str | None = Query(None),
    next: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    """Confirm an email address from the link in the signup email.

    Success opens a session and continues to ``next`` (default
    ``/onboarding``). A missing token and a rejected token redirect to the
    login page with distinct reason codes.
    """
    if not token:
        return _login_redirect("invalid-confirmation-link")

    try:
        session = await identity.confirm_email(token)
    except InvalidToken:
        log_json(logger, logging.WARNING, "email_confirmation_failed")
        return _login_redirect("confirmation-failed")

    await db.commit()

    response = RedirectResponse(
        url=get_safe_redirect_url(next, "/onboarding"),
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    )
    set_session_cookie(response, session.access_token)
    return response


@router.get("/login", response_model=LoginPageResponse, include_in_schema=False)
async def login_page(error: str | None = Query(None)) -> LoginPageResponse:
    """Resolve a ``?error=`` reason code to the message the login page shows.

    Unknown codes show nothing, so arbitrary text can never be reflected.
    """
    message = login_error_message(error)
    return LoginPageResponse(error=error if message else None, message=message)


@router.get("/switch-org/{organization_id}", include_in_schema=False)
async def switch_org(
    organization_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Make another organization active and go to the dashboard.

    The session record is written first; the cookie mirrors it. A
    non-member target leaves both untouched and answers 400.
    """
    target = parse_organization_id(organization_id)
    if target is None:
        return JSONResponse(status_code=400, content={"error": "Invalid organization id"})

    try:
        await SessionService(db).switch_organization(current_user.id, target)
    except Forbidden as e:
        return JSONResponse(status_code=400, content={"error": e.message})

    await db.commit()

    response = RedirectResponse(url="/dashboard", status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    set_active_org_cookie(response, target)
    return response
