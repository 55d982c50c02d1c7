"""Invitation service for organization invitations.

Handles invitation issue, lookup, acceptance (by a signed-in user or through
a fresh signup) and revocation:
- Secure random tokens using secrets.token_urlsafe(32)
- Fixed expiry (7 days by default)
- Single use: ``accepted_at`` is set with a conditional UPDATE
- Email compared case-insensitively
- Duplicate prevention for members and pending invitations
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from impactos.core.config import get_settings
from impactos.core.database import bind_invitation_token, bind_rls_user
from impactos.core.errors import (
    ConstraintViolation,
    EmailDeliveryFailed,
    EmailMismatch,
    InvalidToken,
    InvitationAlreadyUsed,
    InvitationExpired,
    NotFound,
    ValidationFailed,
)
from impactos.core.metrics import record_invitation_event
from impactos.core.saga import Saga
from impactos.core.structured_logging import log_json
from impactos.models.base import as_utc
from impactos.models.enums import AuditAction, InvitationStatus, MemberRole
from impactos.models.invitation import Invitation
from impactos.models.membership import OrganizationMember
from impactos.models.organization import Organization
from impactos.models.user import User
from impactos.services.access_service import OrgContext
from impactos.services.audit_service import AuditService
from impactos.services.email_service import EmailSender, render_invitation_email
from impactos.services.identity_provider import (
    IdentityProvider,
    IdentitySession,
    normalize_email,
)
from impactos.services.session_service import SessionService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvitationSummary:
    """What the accept-invite page shows about a token."""

    invitation: Invitation
    organization_name: str
    status: InvitationStatus


class InvitationService:
    """Service for managing organization invitations."""

    def __init__(
        self,
        db: AsyncSession,
        identity: IdentityProvider | None = None,
        email_sender: EmailSender | None = None,
    ):
        """Initialize invitation service.

        Args:
            db: Database session
            identity: Identity provider, required for invitation signup
            email_sender: Transport for invitation emails, required to issue
        """
        self.db = db
        self.identity = identity
        self.email_sender = email_sender
        self.settings = get_settings()
        self.audit_service = AuditService(db)
        self.sessions = SessionService(db)

    async def create_invitation(
        self,
        ctx: OrgContext,
        email: str,
        role: MemberRole,
        ip_address: str | None = None,
    ) -> Invitation:
        """Invite ``email`` into the caller's active organization.

        The invitation row is written first and the email sent second. When
        delivery fails the row is deleted again and ``EmailDeliveryFailed``
        propagates, so no invitation exists that nobody was told about.

        Args:
            ctx: Caller's organization context (admin or higher)
            email: Address to invite
            role: admin, editor or viewer
            ip_address: Caller IP (for audit)

        Returns:
            Created Invitation instance

        Raises:
            ValidationFailed: Role is not invitable or email is malformed
            ConstraintViolation: Already a member, or a pending invitation exists
            EmailDeliveryFailed: Email could not be sent
        """
        if role not in MemberRole.invitable():
            raise ValidationFailed(
                "Role must be admin, editor or viewer", details={"field": "role"}
            )
        email = normalize_email(email)
        if "@" not in email:
            raise ValidationFailed("Invalid email address", details={"field": "email"})

        if await self._get_member_by_email(email, ctx.organization_id):
            raise ConstraintViolation(f"{email} is already a member of this organization")
        if await self._get_pending_invitation(email, ctx.organization_id):
            raise ConstraintViolation(f"{email} already has a pending invitation")

        organization = await self.db.get(Organization, ctx.organization_id)
        if organization is None:
            raise NotFound("Organization not found")

        saga = Saga("invitation_issue")

        async def insert_invitation() -> Invitation:
            invitation = Invitation(
                organization_id=ctx.organization_id,
                email=email,
                role=role,
                token=secrets.token_urlsafe(32),  # 256-bit entropy
                invited_by=ctx.user_id,
                expires_at=datetime.now(timezone.utc)
                + timedelta(days=self.settings.invitation_expire_days),
            )
            self.db.add(invitation)
            await self.db.flush()
            return invitation

        async def remove_invitation(invitation: Invitation) -> None:
            await self.db.execute(delete(Invitation).where(Invitation.id == invitation.id))
            record_invitation_event("email_failed")

        invitation = await saga.run(
            insert_invitation, compensate=remove_invitation, label="insert_invitation"
        )

        message = render_invitation_email(
            to=email,
            organization_name=organization.name,
            inviter_name=ctx.user.display_name,
            role=role.value,
            invite_url=self.invite_url(invitation.token),
            expire_days=self.settings.invitation_expire_days,
        )
        await saga.run(lambda: self._send(message), label="send_invitation_email")

        await self.audit_service.log(
            organization_id=ctx.organization_id,
            action=AuditAction.INVITATION_CREATE,
            entity_type="invitation",
            entity_id=invitation.id,
            user_id=ctx.user_id,
            ip_address=ip_address,
            diff_json={
                "email": email,
                "role": role.value,
                "expires_at": invitation.expires_at.isoformat(),
            },
        )
        record_invitation_event("created")
        log_json(
            logger,
            logging.INFO,
            "invitation_created",
            invitation_id=str(invitation.id),
            organization_id=str(ctx.organization_id),
            role=role.value,
        )
        return invitation

    async def _send(self, message) -> str | None:
        if self.email_sender is None:
            raise EmailDeliveryFailed("No email transport configured")
        return await self.email_sender.send(message)

    def invite_url(self, token: str) -> str:
        return f"{self.settings.app_url.rstrip('/')}/accept-invite/{token}"

    async def get_invitation_by_token(self, token: str) -> InvitationSummary:
        """Look up an invitation for display.

        Raises:
            InvalidToken: No invitation has this token
        """
        invitation = await self._get_by_token(token)
        organization = await self.db.get(Organization, invitation.organization_id)
        return InvitationSummary(
            invitation=invitation,
            organization_name=organization.name if organization else "",
            status=invitation.status_at(datetime.now(timezone.utc)),
        )

    async def accept_invitation(
        self, token: str, user: User, ip_address: str | None = None
    ) -> OrganizationMember:
        """Accept an invitation as an already signed-in user.

        Checks run in a fixed order: token exists, not yet used, not expired,
        email matches (case-insensitive). Then the membership is inserted,
        the invitation marked accepted and the new organization made active.

        Raises:
            InvalidToken, InvitationAlreadyUsed, InvitationExpired, EmailMismatch
            ConstraintViolation: The user is already a member
        """
        invitation = await self._validate_for_acceptance(token, user.email)
        membership = await self._insert_membership(user.id, invitation)
        await self._mark_accepted(invitation)
        await self.sessions.switch_organization(user.id, invitation.organization_id)
        await self._log_accept(invitation, user.id, ip_address, via="existing_account")
        return membership

    async def signup_from_invitation(
        self,
        token: str,
        email: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
        ip_address: str | None = None,
    ) -> IdentitySession:
        """Create an account from an invitation link and join the organization.

        The account is created pre-confirmed: the invitation link already
        proved ownership of the address. Steps run as a saga; if any step
        after account creation fails, the account is deleted again.

        Returns:
            Session of the new account

        Raises:
            InvalidToken, InvitationAlreadyUsed, InvitationExpired, EmailMismatch
            ValidationFailed: Password rejected
            ConstraintViolation: Email already registered
        """
        if self.identity is None:
            raise RuntimeError("signup_from_invitation requires an identity provider")

        invitation = await self._validate_for_acceptance(token, email)
        saga = Saga("invitation_signup")

        user_id = await saga.run(
            lambda: self.identity.create_user_pre_confirmed(
                invitation.email, password, first_name, last_name
            ),
            compensate=self.identity.delete_user,
            label="create_user",
        )
        await bind_rls_user(self.db, user_id)
        await saga.run(
            lambda: self._insert_membership(user_id, invitation), label="insert_membership"
        )
        await saga.run(lambda: self._mark_accepted(invitation), label="mark_accepted")
        await saga.run(
            lambda: self.sessions.switch_organization(user_id, invitation.organization_id),
            label="switch_session",
        )
        session = await saga.run(
            lambda: self.identity.sign_in(invitation.email, password), label="sign_in"
        )

        await self._log_accept(invitation, user_id, ip_address, via="signup")
        return session

    async def list_pending(self, organization_id: UUID) -> list[Invitation]:
        """Unaccepted, unexpired invitations of an organization, newest first."""
        result = await self.db.execute(
            select(Invitation)
            .where(
                Invitation.organization_id == organization_id,
                Invitation.accepted_at.is_(None),
                Invitation.expires_at > datetime.now(timezone.utc),
            )
            .order_by(Invitation.created_at.desc())
        )
        return list(result.scalars().all())

    async def revoke(self, ctx: OrgContext, invitation_id: UUID) -> None:
        """Delete a not-yet-accepted invitation of the caller's organization.

        Raises:
            NotFound: No such invitation in this organization
            InvitationAlreadyUsed: It was accepted already
        """
        result = await self.db.execute(
            select(Invitation).where(
                Invitation.id == invitation_id,
                Invitation.organization_id == ctx.organization_id,
            )
        )
        invitation = result.scalar_one_or_none()
        if invitation is None:
            raise NotFound("Invitation not found")
        if invitation.accepted_at is not None:
            raise InvitationAlreadyUsed()

        await self.audit_service.log(
            organization_id=ctx.organization_id,
            action=AuditAction.INVITATION_REVOKE,
            entity_type="invitation",
            entity_id=invitation.id,
            user_id=ctx.user_id,
            diff_json={"email": invitation.email, "role": invitation.role.value},
        )
        await self.db.delete(invitation)
        await self.db.flush()
        record_invitation_event("revoked")

    async def _validate_for_acceptance(self, token: str, email: str) -> Invitation:
        invitation = await self._get_by_token(token)

        if invitation.accepted_at is not None:
            raise InvitationAlreadyUsed()
        if as_utc(invitation.expires_at) < datetime.now(timezone.utc):
            raise InvitationExpired()
        if normalize_email(email) != normalize_email(invitation.email):
            raise EmailMismatch(
                "This invitation was sent to a different email address"
            )
        return invitation

    async def _get_by_token(self, token: str) -> Invitation:
        if not token:
            raise InvalidToken()
        await bind_invitation_token(self.db, token)
        result = await self.db.execute(select(Invitation).where(Invitation.token == token))
        invitation = result.scalar_one_or_none()
        if invitation is None:
            raise InvalidToken()
        return invitation

    async def _insert_membership(self, user_id: UUID, invitation: Invitation) -> OrganizationMember:
        membership = OrganizationMember(
            user_id=user_id,
            organization_id=invitation.organization_id,
            role=invitation.role,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(membership)
        except IntegrityError as e:
            raise ConstraintViolation("You are already a member of this organization") from e
        return membership

    async def _mark_accepted(self, invitation: Invitation) -> None:
        accepted_at = datetime.now(timezone.utc)
        result = await self.db.execute(
            update(Invitation)
            .where(and_(Invitation.id == invitation.id, Invitation.accepted_at.is_(None)))
            .values(accepted_at=accepted_at)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvitationAlreadyUsed()
        invitation.accepted_at = accepted_at

    async def _log_accept(
        self, invitation: Invitation, user_id: UUID, ip_address: str | None, via: str
    ) -> None:
        await self.audit_service.log(
            organization_id=invitation.organization_id,
            action=AuditAction.INVITATION_ACCEPT,
            entity_type="invitation",
            entity_id=invitation.id,
            user_id=user_id,
            ip_address=ip_address,
            diff_json={"email": invitation.email, "role": invitation.role.value, "via": via},
        )
        await self.audit_service.log_membership_change(
            organization_id=invitation.organization_id,
            action=AuditAction.MEMBER_ADD,
            member_user_id=user_id,
            user_id=user_id,
            diff={"role": invitation.role.value},
        )
        record_invitation_event("accepted")
        log_json(
            logger,
            logging.INFO,
            "invitation_accepted",
            invitation_id=str(invitation.id),
            organization_id=str(invitation.organization_id),
            user_id=str(user_id),
            via=via,
        )

    async def _get_member_by_email(self, email: str, organization_id: UUID) -> OrganizationMember | None:
        result = await self.db.execute(
            select(OrganizationMember)
            .join(User, User.id == OrganizationMember.user_id)
            .where(
                func.lower(User.email) == email,
                OrganizationMember.organization_id == organization_id,
            )
        )
        return result.scalar_one_or_none()

    async def _get_pending_invitation(self, email: str, organization_id: UUID) -> Invitation | None:
        result = await self.db.execute(
            select(Invitation).where(
                func.lower(Invitation.email) == email,
                Invitation.organization_id == organization_id,
                Invitation.accepted_at.is_(None),
                Invitation.expires_at > datetime.now(timezone.utc),
            )
        )
        return result.scalars().first()
