"""Invitation management endpoints (admin and above)."""
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from impactos.api.deps import get_client_ip, get_mailer, require_admin
from impactos.core.database import get_db
from impactos.schemas.invitation import (
    InvitationListResponse,
    InvitationResponse,
    InviteRequest,
)
from impactos.services.access_service import OrgContext
from impactos.services.email_service import EmailSender
from impactos.services.invitation_service import InvitationService

router = APIRouter()


@router.post("", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
async def create_invitation(
    invite_data: InviteRequest,
    request: Request,
    ctx: OrgContext = Depends(require_admin()),
    db: AsyncSession = Depends(get_db),
    mailer: EmailSender = Depends(get_mailer),
):
    """Invite someone into the active organization.

    Creates an invitation with a random single-use token and a 7-day
    expiry, then emails the accept link.

    Raises:
        Forbidden: Caller is below admin
        ValidationFailed: Role is owner
        ConstraintViolation: Already a member or already invited
        EmailDeliveryFailed: Email could not be sent (no invitation is kept)
    """
    service = InvitationService(db, email_sender=mailer)
    invitation = await service.create_invitation(
        ctx,
        email=invite_data.email,
        role=invite_data.role,
        ip_address=get_client_ip(request),
    )
    await db.commit()

    result = InvitationResponse.model_validate(invitation)
    result.invite_url = service.invite_url(invitation.token)
    return result


@router.get("", response_model=InvitationListResponse)
async def list_invitations(
    ctx: OrgContext = Depends(require_admin()),
    db: AsyncSession = Depends(get_db),
):
    """Pending (unaccepted, unexpired) invitations of the active organization."""
    invitations = await InvitationService(db).list_pending(ctx.organization_id)
    return InvitationListResponse(
        invitations=[InvitationResponse.model_validate(i) for i in invitations],
        total=len(invitations),
    )


@router.delete("/{invitation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_invitation(
    invitation_id: UUID,
    ctx: OrgContext = Depends(require_admin()),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Revoke a pending invitation so its link stops working."""
    await InvitationService(db).revoke(ctx, invitation_id)
    await db.commit()
