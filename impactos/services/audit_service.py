"""Audit service for logging membership and invitation changes."""
from typing import Optional, Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from impactos.models.audit_event import AuditEvent
from impactos.models.enums import AuditAction


class AuditService:
    """Service for creating and reading audit trail entries."""

    def __init__(self, db: AsyncSession):
        """Initialize audit service.

        Args:
            db: Database session
        """
        self.db = db

    async def log(
        self,
        organization_id: UUID,
        action: AuditAction,
        entity_type: str,
        entity_id: UUID,
        user_id: Optional[UUID] = None,
        diff_json: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> AuditEvent:
        """Create an audit log entry.

        Args:
            organization_id: Organization the event belongs to
            action: Action being performed
            entity_type: Type of entity being acted upon
            entity_id: ID of entity being acted upon
            user_id: ID of user performing action (None for system actions)
            diff_json: Before/after diff for update actions
            ip_address: Client IP address

        Returns:
            Created AuditEvent instance
        """
        audit_event = AuditEvent(
            organization_id=organization_id,
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            diff_json=diff_json,
            ip_address=ip_address,
        )
        self.db.add(audit_event)
        await self.db.flush()
        return audit_event

    async def log_membership_change(
        self,
        organization_id: UUID,
        action: AuditAction,
        member_user_id: UUID,
        user_id: Optional[UUID] = None,
        diff: Optional[dict[str, Any]] = None,
    ) -> AuditEvent:
        """Log a membership being added, re-roled or removed."""
        return await self.log(
            organization_id=organization_id,
            user_id=user_id,
            action=action,
            entity_type="organization_member",
            entity_id=member_user_id,
            diff_json=diff,
        )

    async def list_events(self, organization_id: UUID, limit: int = 100) -> list[AuditEvent]:
        """Most recent events of one organization, newest first."""
        result = await self.db.execute(
            select(AuditEvent)
            .where(AuditEvent.organization_id == organization_id)
            .order_by(AuditEvent.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
