"""Active-organization resolution and switching.

The ``user_sessions`` row is the single source of truth for which
organization a user acts in. The ``active_organization_id`` cookie is only a
client-side mirror: it is trusted when it equals a valid session record and
ignored otherwise.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import and_, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from impactos.core.config import get_settings
from impactos.core.errors import Forbidden, NoOrganization
from impactos.core.metrics import record_org_switch
from impactos.core.structured_logging import log_json
from impactos.models.base import as_utc
from impactos.models.enums import AuditAction, MemberRole
from impactos.models.membership import OrganizationMember
from impactos.models.organization import Organization
from impactos.models.user_session import UserSession
from impactos.services.audit_service import AuditService

logger = logging.getLogger(__name__)

LAST_USED_RESOLUTION = timedelta(days=1)


@dataclass(frozen=True)
class ActiveOrganization:
    """Outcome of resolving a user's active organization.

    ``cookie_in_sync`` is False when the caller should (re)write the cookie.
    """

    organization_id: UUID
    role: MemberRole
    cookie_in_sync: bool


@dataclass(frozen=True)
class UserOrganization:
    organization: Organization
    role: MemberRole
    joined_at: datetime


def parse_organization_id(value: str | None) -> UUID | None:
    """Parse a cookie/path value into a UUID, or None when malformed."""
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


class SessionService:
    """Resolves and switches a user's active organization."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()
        self.audit_service = AuditService(db)

    async def get_membership(
        self, user_id: UUID, organization_id: UUID
    ) -> OrganizationMember | None:
        result = await self.db.execute(
            select(OrganizationMember).where(
                and_(
                    OrganizationMember.user_id == user_id,
                    OrganizationMember.organization_id == organization_id,
                )
            )
        )
        return result.scalar_one_or_none()

    async def get_user_organizations(self, user_id: UUID) -> list[UserOrganization]:
        """All organizations the user belongs to, oldest membership first."""
        result = await self.db.execute(
            select(Organization, OrganizationMember.role, OrganizationMember.created_at)
            .join(OrganizationMember, OrganizationMember.organization_id == Organization.id)
            .where(OrganizationMember.user_id == user_id)
            .order_by(OrganizationMember.created_at.asc(), OrganizationMember.id.asc())
        )
        return [
            UserOrganization(organization=org, role=role, joined_at=as_utc(joined_at))
            for org, role, joined_at in result.all()
        ]

    async def get_active_organization(
        self, user_id: UUID, cookie_value: str | None = None
    ) -> ActiveOrganization:
        """Resolve the organization the user is currently acting in.

        Args:
            user_id: Authenticated user
            cookie_value: Raw ``active_organization_id`` cookie, if present

        Returns:
            ActiveOrganization for a valid session record, or for the user's
            first membership when the record is missing, stale or points to an
            organization the user has left (the record is rewritten then)

        Raises:
            NoOrganization: The user has no memberships at all
        """
        record = await self.db.get(UserSession, user_id)
        if record is not None and not self._is_stale(record):
            membership = await self.get_membership(user_id, record.active_organization_id)
            if membership is not None:
                await self._touch(record)
                cookie_org = parse_organization_id(cookie_value)
                return ActiveOrganization(
                    organization_id=record.active_organization_id,
                    role=membership.role,
                    cookie_in_sync=cookie_org == record.active_organization_id,
                )

        result = await self.db.execute(
            select(OrganizationMember)
            .where(OrganizationMember.user_id == user_id)
            .order_by(OrganizationMember.created_at.asc(), OrganizationMember.id.asc())
            .limit(1)
        )
        first = result.scalar_one_or_none()
        if first is None:
            raise NoOrganization()

        await self._upsert(user_id, first.organization_id)
        log_json(
            logger,
            logging.INFO,
            "active_organization_defaulted",
            user_id=str(user_id),
            organization_id=str(first.organization_id),
            had_record=record is not None,
        )
        return ActiveOrganization(
            organization_id=first.organization_id,
            role=first.role,
            cookie_in_sync=False,
        )

    async def get_active_organization_id(
        self, user_id: UUID, cookie_value: str | None = None
    ) -> UUID:
        resolved = await self.get_active_organization(user_id, cookie_value)
        return resolved.organization_id

    async def switch_organization(
        self, user_id: UUID, organization_id: UUID
    ) -> OrganizationMember:
        """Make ``organization_id`` the user's active organization.

        Raises:
            Forbidden: The user is not a member; the session record is left
                untouched
        """
        membership = await self.get_membership(user_id, organization_id)
        if membership is None:
            record_org_switch("forbidden")
            log_json(
                logger,
                logging.WARNING,
                "organization_switch_denied",
                user_id=str(user_id),
                organization_id=str(organization_id),
            )
            raise Forbidden("You are not a member of this organization")

        await self._upsert(user_id, organization_id)
        await self.audit_service.log(
            organization_id=organization_id,
            user_id=user_id,
            action=AuditAction.ORG_SWITCH,
            entity_type="organization",
            entity_id=organization_id,
        )
        record_org_switch("success")
        log_json(
            logger,
            logging.INFO,
            "organization_switched",
            user_id=str(user_id),
            organization_id=str(organization_id),
        )
        return membership

    async def clear_if_active(self, user_id: UUID, organization_id: UUID) -> None:
        """Drop the user's session record if it points at ``organization_id``."""
        await self.db.execute(
            delete(UserSession).where(
                and_(
                    UserSession.user_id == user_id,
                    UserSession.active_organization_id == organization_id,
                )
            )
        )

    async def _upsert(self, user_id: UUID, organization_id: UUID) -> UserSession:
        record = await self.db.get(UserSession, user_id)
        now = datetime.now(UTC)
        if record is None:
            record = UserSession(
                user_id=user_id,
                active_organization_id=organization_id,
                last_switched_at=now,
                last_used_at=now,
            )
            self.db.add(record)
        else:
            record.active_organization_id = organization_id
            record.last_switched_at = now
            record.last_used_at = now
        await self.db.flush()
        return record

    async def _touch(self, record: UserSession) -> None:
        now = datetime.now(UTC)
        if as_utc(record.last_used_at) < now - LAST_USED_RESOLUTION:
            record.last_used_at = now
            await self.db.flush()

    def _is_stale(self, record: UserSession) -> bool:
        """A record unused for longer than the configured max age is ignored."""
        max_age = timedelta(days=self.settings.active_org_session_max_age_days)
        return as_utc(record.last_used_at) < datetime.now(UTC) - max_age
