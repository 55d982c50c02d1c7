"""Authorization gate: authenticated user plus active-organization role."""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from impactos.core.database import bind_rls_user
from impactos.core.errors import Forbidden, Unauthenticated
from impactos.core.request_context import set_actor
from impactos.core.structured_logging import log_json
from impactos.models.enums import MemberRole
from impactos.models.user import User
from impactos.services.identity_provider import IdentityProvider
from impactos.services.session_service import ActiveOrganization, SessionService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrgContext:
    """Who is acting, in which organization, with which role."""

    user: User
    organization_id: UUID
    role: MemberRole

    @property
    def user_id(self) -> UUID:
        return self.user.id

    def has_role(self, min_role: MemberRole) -> bool:
        return self.role.has_permission(min_role)


class AccessService:
    """Answers "who is this" and "may they do that here".

    The gate never filters tenant data itself. It resolves the organization id
    and hands it to the service; on Postgres it also binds the user for the
    row-level-security policies.
    """

    def __init__(self, db: AsyncSession, identity: IdentityProvider):
        self.db = db
        self.identity = identity
        self.sessions = SessionService(db)

    async def require_auth(self, access_token: str | None) -> User:
        session = await self.identity.get_session(access_token)
        if session is None:
            raise Unauthenticated()

        user = await self.db.get(User, session.user_id)
        if user is None:
            raise Unauthenticated()

        set_actor(user.id)
        await bind_rls_user(self.db, user.id)
        return user

    async def require_role(
        self,
        user: User,
        min_role: MemberRole,
        cookie_value: str | None = None,
    ) -> tuple[OrgContext, ActiveOrganization]:
        """Resolve the active organization and check the user's role in it.

        Raises:
            NoOrganization: The user has no memberships
            Forbidden: The role in the active organization is below ``min_role``
        """
        active = await self.sessions.get_active_organization(user.id, cookie_value)
        context = OrgContext(user=user, organization_id=active.organization_id, role=active.role)
        set_actor(user.id, active.organization_id)
        self._check(context, min_role)
        return context, active

    async def require_org_role(
        self, user: User, organization_id: UUID, min_role: MemberRole
    ) -> OrgContext:
        """Check the user's role in an explicitly named organization."""
        membership = await self.sessions.get_membership(user.id, organization_id)
        if membership is None:
            log_json(
                logger,
                logging.WARNING,
                "access_denied",
                user_id=str(user.id),
                organization_id=str(organization_id),
                reason="not_a_member",
            )
            raise Forbidden("You are not a member of this organization")

        context = OrgContext(user=user, organization_id=organization_id, role=membership.role)
        self._check(context, min_role)
        return context

    def _check(self, context: OrgContext, min_role: MemberRole) -> None:
        if context.has_role(min_role):
            return
        log_json(
            logger,
            logging.WARNING,
            "access_denied",
            user_id=str(context.user_id),
            organization_id=str(context.organization_id),
            role=context.role.value,
            required_role=min_role.value,
        )
        raise Forbidden(
            f"This action requires the {min_role.value} role or higher",
            details={"required_role": min_role.value, "current_role": context.role.value},
        )
