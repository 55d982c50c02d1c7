"""Invitation acceptance endpoints (the link in the invitation email)."""

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from impactos.api.deps import (
    get_client_ip,
    get_current_user,
    get_identity_provider,
    set_active_org_cookie,
    set_session_cookie,
)
from impactos.core.config import get_settings
from impactos.core.database import get_db
from impactos.models.user import User
from impactos.schemas.auth import TokenResponse
from impactos.schemas.invitation import (
    AcceptInviteResponse,
    InvitationSummaryResponse,
    InviteSignupRequest,
)
from impactos.services.identity_provider import IdentityProvider
from impactos.services.invitation_service import InvitationService

settings = get_settings()
router = APIRouter()


@router.get("/{token}", response_model=InvitationSummaryResponse)
async def get_invitation(token: str, db: AsyncSession = Depends(get_db)):
    """Summary shown before accepting: organization, role, status.

    Raises:
        InvalidToken: Unknown token
    """
    summary = await InvitationService(db).get_invitation_by_token(token)
    return InvitationSummaryResponse(
        email=summary.invitation.email,
        role=summary.invitation.role,
        organization_name=summary.organization_name,
        status=summary.status.value,
        expires_at=summary.invitation.expires_at,
    )


@router.post("/{token}", response_model=AcceptInviteResponse, status_code=status.HTTP_200_OK)
async def accept_invitation(
    token: str,
    request: Request,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Accept an invitation as the signed-in user.

    Raises:
        InvalidToken: Unknown token
        InvitationAlreadyUsed: Accepted before
        InvitationExpired: Past its expiry
        EmailMismatch: Signed in with a different address
        ConstraintViolation: Already a member
    """
    membership = await InvitationService(db).accept_invitation(
        token, current_user, ip_address=get_client_ip(request)
    )
    await db.commit()

    set_active_org_cookie(response, membership.organization_id)
    return AcceptInviteResponse(
        organization_id=membership.organization_id,
        role=membership.role,
    )


@router.post("/{token}/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def signup_from_invitation(
    token: str,
    signup_data: InviteSignupRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    """Create an account from the invitation link and join the organization.

    The new account is signed in straight away; no confirmation email is
    needed because the invitation link already proved the address.
    """
    service = InvitationService(db, identity=identity)
    summary = await service.get_invitation_by_token(token)
    session = await service.signup_from_invitation(
        token,
        email=signup_data.email,
        password=signup_data.password,
        first_name=signup_data.first_name,
        last_name=signup_data.last_name,
        ip_address=get_client_ip(request),
    )
    await db.commit()

    set_session_cookie(response, session.access_token)
    set_active_org_cookie(response, summary.invitation.organization_id)
    return TokenResponse(
        access_token=session.access_token,
        token_type="bearer",
        expires_in=settings.session_token_expire_minutes * 60,
        redirect_to="/dashboard",
    )
