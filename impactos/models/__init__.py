"""SQLAlchemy models."""

from impactos.models.audit_event import AuditEvent
from impactos.models.base import Base, BaseModel
from impactos.models.enums import AuditAction, InvitationStatus, MemberRole
from impactos.models.identity_account import IdentityAccount
from impactos.models.invitation import Invitation
from impactos.models.membership import OrganizationMember
from impactos.models.organization import Organization
from impactos.models.report import Report
from impactos.models.tenant_config import TenantConfig
from impactos.models.user import User
from impactos.models.user_session import UserSession

__all__ = [
    "Base",
    "BaseModel",
    "MemberRole",
    "InvitationStatus",
    "AuditAction",
    "IdentityAccount",
    "User",
    "Organization",
    "OrganizationMember",
    "UserSession",
    "Invitation",
    "TenantConfig",
    "Report",
    "AuditEvent",
]
