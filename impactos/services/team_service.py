"""Team service: members of one organization and their roles."""
import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from impactos.core.errors import Forbidden, NotFound, ValidationFailed
from impactos.core.structured_logging import log_json
from impactos.models.base import as_utc
from impactos.models.enums import AuditAction, MemberRole
from impactos.models.membership import OrganizationMember
from impactos.models.user import User
from impactos.services.access_service import OrgContext
from impactos.services.audit_service import AuditService
from impactos.services.session_service import SessionService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TeamMember:
    user_id: UUID
    email: str
    first_name: str
    last_name: str
    role: MemberRole
    joined_at: datetime


class TeamService:
    """Service for membership management inside an organization."""

    def __init__(self, db: AsyncSession):
        """Initialize team service.

        Args:
            db: Database session
        """
        self.db = db
        self.audit_service = AuditService(db)
        self.sessions = SessionService(db)

    async def list_members(self, organization_id: UUID) -> list[TeamMember]:
        """List members with profile data, earliest joiner first."""
        result = await self.db.execute(
            select(OrganizationMember, User)
            .join(User, User.id == OrganizationMember.user_id)
            .where(OrganizationMember.organization_id == organization_id)
            .order_by(OrganizationMember.created_at.asc(), OrganizationMember.id.asc())
        )
        return [
            TeamMember(
                user_id=user.id,
                email=user.email,
                first_name=user.first_name,
                last_name=user.last_name,
                role=membership.role,
                joined_at=as_utc(membership.created_at),
            )
            for membership, user in result.all()
        ]

    async def get_member(self, organization_id: UUID, user_id: UUID) -> OrganizationMember:
        """Get one membership.

        Raises:
            NotFound: The user is not a member of the organization
        """
        membership = await self.sessions.get_membership(user_id, organization_id)
        if membership is None:
            raise NotFound("Member not found")
        return membership

    async def _count_owners(self, organization_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(OrganizationMember.id)).where(
                and_(
                    OrganizationMember.organization_id == organization_id,
                    OrganizationMember.role == MemberRole.OWNER,
                )
            )
        )
        return result.scalar_one()

    async def _is_last_owner(self, membership: OrganizationMember) -> bool:
        if membership.role != MemberRole.OWNER:
            return False
        return await self._count_owners(membership.organization_id) == 1

    async def change_role(
        self,
        ctx: OrgContext,
        target_user_id: UUID,
        new_role: MemberRole,
    ) -> OrganizationMember:
        """Change a member's role.

        Rules:
        - Nobody changes their own role
        - Only owners grant or revoke ``owner``
        - The last owner cannot be demoted

        Raises:
            ValidationFailed: Own role, or last-owner demotion
            Forbidden: Non-owner touching the owner role
            NotFound: Target is not a member
        """
        if target_user_id == ctx.user_id:
            raise ValidationFailed("You cannot change your own role")

        membership = await self.get_member(ctx.organization_id, target_user_id)
        old_role = membership.role
        if old_role == new_role:
            return membership

        touches_owner = MemberRole.OWNER in (old_role, new_role)
        if touches_owner and ctx.role != MemberRole.OWNER:
            raise Forbidden("Only owners can grant or revoke the owner role")

        if old_role == MemberRole.OWNER and await self._is_last_owner(membership):
            raise ValidationFailed("Cannot demote the last owner of the organization")

        membership.role = new_role
        await self.db.flush()

        await self.audit_service.log_membership_change(
            organization_id=ctx.organization_id,
            action=AuditAction.MEMBER_ROLE_CHANGE,
            member_user_id=target_user_id,
            user_id=ctx.user_id,
            diff={"old_role": old_role.value, "new_role": new_role.value},
        )
        log_json(
            logger,
            logging.INFO,
            "member_role_changed",
            organization_id=str(ctx.organization_id),
            member_user_id=str(target_user_id),
            old_role=old_role.value,
            new_role=new_role.value,
        )
        return membership

    async def remove_member(self, ctx: OrgContext, target_user_id: UUID) -> None:
        """Remove a member from the organization.

        Rules:
        - Nobody removes themselves here
        - Only owners remove owners
        - The last owner cannot be removed

        The removed user's session record is cleared if it pointed at this
        organization; their next request falls back to another membership.

        Raises:
            ValidationFailed: Self-removal, or last owner
            Forbidden: Non-owner removing an owner
            NotFound: Target is not a member
        """
        if target_user_id == ctx.user_id:
            raise ValidationFailed("You cannot remove yourself from the organization")

        membership = await self.get_member(ctx.organization_id, target_user_id)
        if membership.role == MemberRole.OWNER:
            if ctx.role != MemberRole.OWNER:
                raise Forbidden("Only owners can remove other owners")
            if await self._is_last_owner(membership):
                raise ValidationFailed("Cannot remove the last owner of the organization")

        await self.audit_service.log_membership_change(
            organization_id=ctx.organization_id,
            action=AuditAction.MEMBER_REMOVE,
            member_user_id=target_user_id,
            user_id=ctx.user_id,
            diff={"role": membership.role.value},
        )
        await self.db.delete(membership)
        await self.sessions.clear_if_active(target_user_id, ctx.organization_id)
        await self.db.flush()
        log_json(
            logger,
            logging.INFO,
            "member_removed",
            organization_id=str(ctx.organization_id),
            member_user_id=str(target_user_id),
        )
