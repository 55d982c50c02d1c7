"""Integration tests for team management (members and roles)."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from impactos.core.errors import ValidationFailed
from impactos.models.audit_event import AuditEvent
from impactos.models.enums import AuditAction, MemberRole
from impactos.models.membership import OrganizationMember
from impactos.models.organization import Organization
from impactos.models.user import User
from impactos.models.user_session import UserSession
from impactos.services.access_service import OrgContext
from impactos.services.team_service import TeamService


async def _role(db: AsyncSession, user_id, organization_id) -> MemberRole | None:
    result = await db.execute(
        select(OrganizationMember.role).where(
            OrganizationMember.user_id == user_id,
            OrganizationMember.organization_id == organization_id,
        )
    )
    return result.scalar_one_or_none()


@pytest.mark.asyncio
class TestListMembers:
    async def test_admin_lists_members_in_join_order(
        self,
        client: AsyncClient,
        test_owner_user: User,
        test_admin_user: User,
        test_editor_user: User,
        admin_headers: dict,
    ):
        response = await client.get("/api/team/members", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert [(m["email"], m["role"]) for m in data["members"]] == [
            ("owner@test.com", "owner"),
            ("admin@test.com", "admin"),
            ("editor@test.com", "editor"),
        ]
        assert data["members"][0]["first_name"] == "Olivia"


@pytest.mark.asyncio
class TestChangeRole:
    """Integration tests for PATCH /api/team/members/{user_id}."""

    async def test_admin_changes_editor_to_viewer(
        self,
        client: AsyncClient,
        db: AsyncSession,
        test_org: Organization,
        test_admin_user: User,
        test_editor_user: User,
        admin_headers: dict,
    ):
        response = await client.patch(
            f"/api/team/members/{test_editor_user.id}",
            headers=admin_headers,
            json={"role": "viewer"},
        )

        assert response.status_code == 200
        assert response.json()["role"] == "viewer"
        assert await _role(db, test_editor_user.id, test_org.id) == MemberRole.VIEWER

        result = await db.execute(
            select(AuditEvent).where(AuditEvent.action == AuditAction.MEMBER_ROLE_CHANGE)
        )
        event = result.scalar_one()
        assert event.user_id == test_admin_user.id
        assert event.diff_json == {"old_role": "editor", "new_role": "viewer"}

    async def test_admin_cannot_grant_owner(
        self,
        client: AsyncClient,
        db: AsyncSession,
        test_org: Organization,
        test_editor_user: User,
        admin_headers: dict,
    ):
        response = await client.patch(
            f"/api/team/members/{test_editor_user.id}",
            headers=admin_headers,
            json={"role": "owner"},
        )

        assert response.status_code == 403
        assert await _role(db, test_editor_user.id, test_org.id) == MemberRole.EDITOR

    async def test_admin_cannot_demote_owner(
        self,
        client: AsyncClient,
        db: AsyncSession,
        test_org: Organization,
        test_owner_user: User,
        admin_headers: dict,
    ):
        response = await client.patch(
            f"/api/team/members/{test_owner_user.id}",
            headers=admin_headers,
            json={"role": "viewer"},
        )

        assert response.status_code == 403
        assert await _role(db, test_owner_user.id, test_org.id) == MemberRole.OWNER

    async def test_owner_can_promote_to_owner(
        self,
        client: AsyncClient,
        db: AsyncSession,
        test_org: Organization,
        test_admin_user: User,
        owner_headers: dict,
    ):
        response = await client.patch(
            f"/api/team/members/{test_admin_user.id}",
            headers=owner_headers,
            json={"role": "owner"},
        )

        assert response.status_code == 200
        assert await _role(db, test_admin_user.id, test_org.id) == MemberRole.OWNER

    async def test_cannot_change_own_role(
        self, client: AsyncClient, test_owner_user: User, test_org: Organization, owner_headers: dict
    ):
        response = await client.patch(
            f"/api/team/members/{test_owner_user.id}",
            headers=owner_headers,
            json={"role": "admin"},
        )

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    async def test_unknown_member(
        self, client: AsyncClient, test_outsider_user: User, admin_headers: dict
    ):
        response = await client.patch(
            f"/api/team/members/{test_outsider_user.id}",
            headers=admin_headers,
            json={"role": "viewer"},
        )

        assert response.status_code == 404

    async def test_last_owner_cannot_be_demoted(
        self, db: AsyncSession, test_org: Organization, test_owner_user: User, test_admin_user: User
    ):
        """Test the single remaining owner keeps the role even for an owner-level caller."""
        ctx = OrgContext(user=test_admin_user, organization_id=test_org.id, role=MemberRole.OWNER)

        with pytest.raises(ValidationFailed, match="last owner"):
            await TeamService(db).change_role(ctx, test_owner_user.id, MemberRole.ADMIN)

        assert await _role(db, test_owner_user.id, test_org.id) == MemberRole.OWNER

    async def test_one_of_two_owners_can_be_demoted(
        self,
        db: AsyncSession,
        test_org: Organization,
        test_owner_user: User,
        test_admin_user: User,
    ):
        second_owner = test_admin_user
        membership = (
            await db.execute(
                select(OrganizationMember).where(OrganizationMember.user_id == second_owner.id)
            )
        ).scalar_one()
        membership.role = MemberRole.OWNER
        await db.commit()
        ctx = OrgContext(user=second_owner, organization_id=test_org.id, role=MemberRole.OWNER)

        await TeamService(db).change_role(ctx, test_owner_user.id, MemberRole.ADMIN)

        assert await _role(db, test_owner_user.id, test_org.id) == MemberRole.ADMIN


@pytest.mark.asyncio
class TestRemoveMember:
    """Integration tests for DELETE /api/team/members/{user_id}."""

    async def test_admin_removes_editor(
        self,
        client: AsyncClient,
        db: AsyncSession,
        test_org: Organization,
        test_editor_user: User,
        admin_headers: dict,
    ):
        response = await client.delete(
            f"/api/team/members/{test_editor_user.id}", headers=admin_headers
        )

        assert response.status_code == 204
        assert await _role(db, test_editor_user.id, test_org.id) is None
        result = await db.execute(
            select(AuditEvent).where(AuditEvent.action == AuditAction.MEMBER_REMOVE)
        )
        assert result.scalar_one().entity_id == test_editor_user.id

    async def test_removal_clears_session_pointing_at_organization(
        self,
        db: AsyncSession,
        test_org: Organization,
        test_admin_user: User,
        test_editor_user: User,
    ):
        db.add(UserSession(user_id=test_editor_user.id, active_organization_id=test_org.id))
        await db.commit()
        ctx = OrgContext(user=test_admin_user, organization_id=test_org.id, role=MemberRole.ADMIN)

        await TeamService(db).remove_member(ctx, test_editor_user.id)
        await db.commit()

        result = await db.execute(
            select(UserSession).where(UserSession.user_id == test_editor_user.id)
        )
        assert result.scalar_one_or_none() is None

    async def test_admin_cannot_remove_owner(
        self,
        client: AsyncClient,
        db: AsyncSession,
        test_org: Organization,
        test_owner_user: User,
        admin_headers: dict,
    ):
        response = await client.delete(
            f"/api/team/members/{test_owner_user.id}", headers=admin_headers
        )

        assert response.status_code == 403
        assert await _role(db, test_owner_user.id, test_org.id) == MemberRole.OWNER

    async def test_cannot_remove_self(
        self, client: AsyncClient, test_admin_user: User, admin_headers: dict
    ):
        response = await client.delete(
            f"/api/team/members/{test_admin_user.id}", headers=admin_headers
        )

        assert response.status_code == 422

    async def test_last_owner_cannot_be_removed(
        self, db: AsyncSession, test_org: Organization, test_owner_user: User, test_admin_user: User
    ):
        ctx = OrgContext(user=test_admin_user, organization_id=test_org.id, role=MemberRole.OWNER)

        with pytest.raises(ValidationFailed, match="last owner"):
            await TeamService(db).remove_member(ctx, test_owner_user.id)

        assert await _role(db, test_owner_user.id, test_org.id) == MemberRole.OWNER


@pytest.mark.asyncio
class TestMembershipConstraint:
    async def test_duplicate_membership_is_rejected_by_database(
        self, db: AsyncSession, test_org: Organization, test_owner_user: User
    ):
        """Test (user, organization) is unique at the storage level."""
        from sqlalchemy.exc import IntegrityError

        db.add(
            OrganizationMember(
                user_id=test_owner_user.id, organization_id=test_org.id, role=MemberRole.VIEWER
            )
        )
        with pytest.raises(IntegrityError):
            await db.flush()
        await db.rollback()
