"""Organization service: creation (with owner bootstrap) and deletion."""
import logging
import re
import secrets
import string
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from impactos.core.config import get_settings
from impactos.core.errors import ConstraintViolation, NotFound, ValidationFailed
from impactos.core.saga import Saga
from impactos.core.structured_logging import log_json
from impactos.models.enums import AuditAction, MemberRole
from impactos.models.membership import OrganizationMember
from impactos.models.organization import Organization
from impactos.models.tenant_config import DEFAULT_FEATURE_FLAGS, TenantConfig
from impactos.models.user import User
from impactos.services.access_service import AccessService
from impactos.services.audit_service import AuditService
from impactos.services.identity_provider import IdentityProvider
from impactos.services.session_service import SessionService, UserOrganization

logger = logging.getLogger(__name__)

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 255
_SLUG_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def generate_slug(name: str) -> str:
    """Lowercase, whitespace runs to ``-``, drop anything outside ``[a-z0-9-]``."""
    slug = re.sub(r"\s+", "-", name.strip().lower())
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    return slug or "organization"


def _random_suffix(length: int = 6) -> str:
    return "".join(secrets.choice(_SLUG_SUFFIX_ALPHABET) for _ in range(length))


def validate_organization_name(name: str) -> str:
    cleaned = (name or "").strip()
    if len(cleaned) < NAME_MIN_LENGTH:
        raise ValidationFailed(
            f"Organization name must be at least {NAME_MIN_LENGTH} characters",
            details={"field": "name"},
        )
    if len(cleaned) > NAME_MAX_LENGTH:
        raise ValidationFailed(
            f"Organization name must be at most {NAME_MAX_LENGTH} characters",
            details={"field": "name"},
        )
    return cleaned


class OrganizationService:
    """Service for creating and deleting organizations."""

    def __init__(self, db: AsyncSession, identity: IdentityProvider):
        """Initialize organization service.

        Args:
            db: Database session
            identity: Identity provider (for the authorization gate)
        """
        self.db = db
        self.settings = get_settings()
        self.audit_service = AuditService(db)
        self.sessions = SessionService(db)
        self.access = AccessService(db, identity)

    async def create(self, user: User, name: str) -> Organization:
        """Create an organization owned by ``user`` and make it active.

        Steps run as a saga: organization row, owner membership, session
        switch, default tenant configuration. If any step after the first
        fails, the organization row is deleted again (taking whatever was
        already created with it) and the error is re-raised.

        Args:
            user: Creator, becomes ``owner``
            name: Display name; stripped, 2-255 characters

        Returns:
            Created Organization instance

        Raises:
            ValidationFailed: Name too short or too long
            ConstraintViolation: Slug still taken after one retry
        """
        cleaned = validate_organization_name(name)
        saga = Saga("organization_create")

        organization = await saga.run(
            lambda: self._insert_with_unique_slug(cleaned),
            compensate=self._delete_row,
            label="insert_organization",
        )

        async def add_owner() -> OrganizationMember:
            membership = OrganizationMember(
                user_id=user.id,
                organization_id=organization.id,
                role=MemberRole.OWNER,
            )
            self.db.add(membership)
            await self.db.flush()
            return membership

        async def provision_config() -> TenantConfig:
            config = TenantConfig(organization_id=organization.id, ai_features={}, **DEFAULT_FEATURE_FLAGS)
            self.db.add(config)
            await self.db.flush()
            return config

        await saga.run(add_owner, label="insert_owner_membership")
        # Tenant rows are only writable once the new organization is active
        await saga.run(
            lambda: self.sessions.switch_organization(user.id, organization.id),
            label="switch_session",
        )
        await saga.run(provision_config, label="insert_tenant_config")

        await self.audit_service.log(
            organization_id=organization.id,
            user_id=user.id,
            action=AuditAction.ORG_CREATE,
            entity_type="organization",
            entity_id=organization.id,
            diff_json={"name": organization.name, "slug": organization.slug},
        )
        log_json(
            logger,
            logging.INFO,
            "organization_created",
            organization_id=str(organization.id),
            slug=organization.slug,
            owner_id=str(user.id),
        )
        return organization

    async def _insert_with_unique_slug(self, name: str) -> Organization:
        base_slug = generate_slug(name)
        for slug in (base_slug, f"{base_slug}-{_random_suffix()}"):
            organization = Organization(name=name, slug=slug)
            try:
                async with self.db.begin_nested():
                    self.db.add(organization)
            except IntegrityError:
                log_json(logger, logging.INFO, "organization_slug_taken", slug=slug)
                continue
            return organization

        raise ConstraintViolation(
            "An organization with a similar name already exists. Please choose another name.",
            details={"field": "name"},
        )

    async def _delete_row(self, organization: Organization) -> None:
        await self.db.execute(delete(Organization).where(Organization.id == organization.id))

    def _forget_cascaded_rows(self, organization_id: UUID) -> None:
        # ON DELETE CASCADE removed these rows behind the identity map's back
        for obj in list(self.db.identity_map.values()):
            owner = getattr(obj, "organization_id", None) or getattr(obj, "active_organization_id", None)
            if owner == organization_id:
                self.db.expunge(obj)

    async def get_user_organizations(self, user_id: UUID) -> list[UserOrganization]:
        return await self.sessions.get_user_organizations(user_id)

    async def get_by_id(self, organization_id: UUID) -> Organization:
        """Get organization by ID.

        Raises:
            NotFound: No such organization
        """
        result = await self.db.execute(
            select(Organization).where(Organization.id == organization_id)
        )
        organization = result.scalar_one_or_none()
        if organization is None:
            raise NotFound("Organization not found")
        return organization

    async def get_config(self, organization_id: UUID) -> TenantConfig | None:
        result = await self.db.execute(
            select(TenantConfig).where(TenantConfig.organization_id == organization_id)
        )
        return result.scalar_one_or_none()

    async def delete(self, user: User, organization_id: UUID, confirmation: str) -> None:
        """Delete an organization and, by cascade, everything it owns.

        The confirmation literal is checked before anything else so a
        mismatch never touches a row.

        Raises:
            ValidationFailed: ``confirmation`` is not exactly the literal
            Forbidden: ``user`` is not an owner of the organization
            NotFound: Organization does not exist
        """
        expected = self.settings.org_delete_confirmation
        if confirmation != expected:
            raise ValidationFailed(
                f'Please type "{expected}" to confirm deletion',
                details={"field": "confirmation"},
            )

        await self.get_by_id(organization_id)
        await self.access.require_org_role(user, organization_id, MemberRole.OWNER)

        await self.db.execute(delete(Organization).where(Organization.id == organization_id))
        await self.db.flush()
        self._forget_cascaded_rows(organization_id)
        log_json(
            logger,
            logging.WARNING,
            "organization_deleted",
            organization_id=str(organization_id),
            deleted_by=str(user.id),
        )
