"""Contract tests for team management endpoints."""
import pytest
from httpx import AsyncClient

from impactos.models.user import User

MEMBER_FIELDS = {"user_id", "email", "first_name", "last_name", "role", "joined_at"}


@pytest.mark.asyncio
class TestTeamContract:
    async def test_list_members_response_schema(
        self, client: AsyncClient, test_admin_user: User, admin_headers: dict
    ):
        response = await client.get("/api/team/members", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"members", "total"}
        assert data["total"] == len(data["members"])
        for member in data["members"]:
            assert set(member) == MEMBER_FIELDS

    async def test_change_role_response_schema(
        self, client: AsyncClient, test_viewer_user: User, admin_headers: dict
    ):
        response = await client.patch(
            f"/api/team/members/{test_viewer_user.id}",
            headers=admin_headers,
            json={"role": "editor"},
        )

        assert response.status_code == 200
        data = response.json()
        assert set(data) == MEMBER_FIELDS
        assert data["user_id"] == str(test_viewer_user.id)
        assert data["role"] == "editor"

    async def test_remove_member_returns_no_content(
        self, client: AsyncClient, test_viewer_user: User, admin_headers: dict
    ):
        response = await client.delete(
            f"/api/team/members/{test_viewer_user.id}", headers=admin_headers
        )

        assert response.status_code == 204
        assert response.content == b""

    async def test_not_found_response_schema(
        self, client: AsyncClient, test_outsider_user: User, admin_headers: dict
    ):
        response = await client.delete(
            f"/api/team/members/{test_outsider_user.id}", headers=admin_headers
        )

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"
