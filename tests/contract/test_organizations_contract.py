"""Contract tests for organization endpoints."""
import pytest
from httpx import AsyncClient

from impactos.models.organization import Organization
from impactos.models.user import User

ORGANIZATION_FIELDS = {"id", "name", "slug", "created_at", "updated_at"}
CONFIG_FIELDS = {
    "feature_company_updates",
    "feature_interactions",
    "feature_advisor_profiles",
    "feature_fireflies",
    "feature_commitment_tracking",
    "feature_ai_integration",
    "ai_features",
}


@pytest.mark.asyncio
class TestCreateOrganizationContract:
    """Contract tests for POST /api/organizations endpoint."""

    async def test_create_response_schema(
        self, client: AsyncClient, test_outsider_user: User, outsider_headers: dict
    ):
        response = await client.post(
            "/api/organizations", headers=outsider_headers, json={"name": "Contract Co"}
        )

        assert response.status_code == 201
        data = response.json()
        assert set(data) == ORGANIZATION_FIELDS
        assert data["name"] == "Contract Co"
        assert data["slug"] == "contract-co"

    async def test_create_missing_name(self, client: AsyncClient, outsider_headers: dict):
        response = await client.post("/api/organizations", headers=outsider_headers, json={})

        assert response.status_code == 422
        data = response.json()
        assert data["error"] == "validation_error"
        assert "name" in data["details"]


@pytest.mark.asyncio
class TestListOrganizationsContract:
    """Contract tests for GET /api/organizations endpoint."""

    async def test_list_response_schema(
        self, client: AsyncClient, test_org: Organization, owner_headers: dict
    ):
        response = await client.get("/api/organizations", headers=owner_headers)

        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"organizations", "active_organization_id"}
        assert data["active_organization_id"] == str(test_org.id)

        entry = data["organizations"][0]
        assert set(entry) == {"id", "name", "slug", "role", "joined_at", "is_active"}
        assert entry["role"] == "owner"
        assert entry["is_active"] is True

    async def test_list_without_memberships(self, client: AsyncClient, outsider_headers: dict):
        response = await client.get("/api/organizations", headers=outsider_headers)

        assert response.status_code == 200
        assert response.json() == {"organizations": [], "active_organization_id": None}


@pytest.mark.asyncio
class TestCurrentOrganizationContract:
    """Contract tests for GET /api/organizations/current endpoint."""

    async def test_current_response_schema(
        self, client: AsyncClient, test_org: Organization, owner_headers: dict
    ):
        response = await client.get("/api/organizations/current", headers=owner_headers)

        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"organization", "role", "config"}
        assert set(data["organization"]) == ORGANIZATION_FIELDS
        assert data["organization"]["id"] == str(test_org.id)
        assert set(data["config"]) == CONFIG_FIELDS

    async def test_no_organization_response_schema(
        self, client: AsyncClient, outsider_headers: dict
    ):
        response = await client.get("/api/organizations/current", headers=outsider_headers)

        assert response.status_code == 409
        data = response.json()
        assert set(data) == {"error", "message", "redirect_to"}
        assert data["error"] == "no_organization"


@pytest.mark.asyncio
class TestDeleteOrganizationContract:
    """Contract tests for DELETE /api/organizations/{id} endpoint."""

    async def test_delete_returns_no_content(
        self, client: AsyncClient, test_org: Organization, owner_headers: dict
    ):
        response = await client.request(
            "DELETE",
            f"/api/organizations/{test_org.id}",
            headers=owner_headers,
            json={"confirmation": "DELETE"},
        )

        assert response.status_code == 204
        assert response.content == b""

    async def test_delete_forbidden_response_schema(
        self, client: AsyncClient, test_org: Organization, editor_headers: dict
    ):
        response = await client.request(
            "DELETE",
            f"/api/organizations/{test_org.id}",
            headers=editor_headers,
            json={"confirmation": "DELETE"},
        )

        assert response.status_code == 403
        data = response.json()
        assert data["error"] == "forbidden"
        assert data["details"]["required_role"] == "owner"
