"""Enumerations for membership roles, invitation states and audit actions."""

from enum import Enum


class MemberRole(str, Enum):
    """Role of a user inside one organization.

    Strict hierarchy (higher can do everything lower can do):
    1. OWNER (organization deletion, owner management)
    2. ADMIN (team management, invitations)
    3. EDITOR (create and edit tenant records)
    4. VIEWER (read-only)
    """

    OWNER = "owner"
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"

    @classmethod
    def get_hierarchy_level(cls, role: "MemberRole") -> int:
        """Get numeric hierarchy level for role comparison.

        Args:
            role: MemberRole to get level for

        Returns:
            Integer level (higher = more permissions)
        """
        levels = {
            cls.VIEWER: 1,
            cls.EDITOR: 2,
            cls.ADMIN: 3,
            cls.OWNER: 4,
        }
        return levels.get(role, 0)

    def has_permission(self, required_role: "MemberRole") -> bool:
        """Check if this role satisfies an action requiring ``required_role``."""
        return self.get_hierarchy_level(self) >= self.get_hierarchy_level(required_role)

    @classmethod
    def invitable(cls) -> tuple["MemberRole", ...]:
        """Roles that may be granted through an invitation (never owner)."""
        return (cls.ADMIN, cls.EDITOR, cls.VIEWER)


class InvitationStatus(str, Enum):
    """Derived invitation state; only ``accepted_at`` is stored."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


class AuditAction(str, Enum):
    """Audit action enumeration for tracking administrative actions."""

    # Organization
    ORG_CREATE = "organization.create"
    ORG_SWITCH = "organization.switch"

    # Membership
    MEMBER_ADD = "member.add"
    MEMBER_ROLE_CHANGE = "member.role_change"
    MEMBER_REMOVE = "member.remove"

    # Invitation
    INVITATION_CREATE = "invitation.create"
    INVITATION_ACCEPT = "invitation.accept"
    INVITATION_REVOKE = "invitation.revoke"

    # Reports
    REPORT_CREATE = "report.create"
