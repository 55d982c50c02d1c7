"""Team management endpoints: members of the active organization."""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from impactos.api.deps import require_admin
from impactos.core.database import get_db
from impactos.schemas.user import (
    MemberRoleUpdateRequest,
    TeamMemberListResponse,
    TeamMemberResponse,
)
from impactos.services.access_service import OrgContext
from impactos.services.team_service import TeamService

router = APIRouter()


@router.get(
    "/members",
    response_model=TeamMemberListResponse,
    summary="List members",
    description="Members of the active organization, earliest joiner first. Admin and above.",
)
async def list_members(
    ctx: OrgContext = Depends(require_admin()),
    db: AsyncSession = Depends(get_db),
) -> TeamMemberListResponse:
    members = await TeamService(db).list_members(ctx.organization_id)
    return TeamMemberListResponse(
        members=[TeamMemberResponse.model_validate(m) for m in members],
        total=len(members),
    )


@router.patch(
    "/members/{user_id}",
    response_model=TeamMemberResponse,
    summary="Change a member's role",
)
async def change_member_role(
    user_id: UUID,
    update_data: MemberRoleUpdateRequest,
    ctx: OrgContext = Depends(require_admin()),
    db: AsyncSession = Depends(get_db),
) -> TeamMemberResponse:
    """Change a member's role.

    Raises:
        ValidationFailed: Own role, or demoting the last owner
        Forbidden: Non-owner granting or revoking owner
        NotFound: Not a member
    """
    service = TeamService(db)
    await service.change_role(ctx, user_id, update_data.role)
    await db.commit()

    members = await service.list_members(ctx.organization_id)
    return next(
        TeamMemberResponse.model_validate(m) for m in members if m.user_id == user_id
    )


@router.delete(
    "/members/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a member",
)
async def remove_member(
    user_id: UUID,
    ctx: OrgContext = Depends(require_admin()),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Remove a member from the active organization.

    Raises:
        ValidationFailed: Removing yourself, or the last owner
        Forbidden: Non-owner removing an owner
        NotFound: Not a member
    """
    await TeamService(db).remove_member(ctx, user_id)
    await db.commit()
