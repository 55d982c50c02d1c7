"""Contract tests for authentication endpoints.

These tests validate response shapes for signup, login, logout and /api/me.
"""
import pytest
from httpx import AsyncClient

from impactos.models.user import User


@pytest.mark.asyncio
class TestSignupContract:
    """Contract tests for POST /api/auth/signup endpoint."""

    async def test_signup_success_response_schema(self, client: AsyncClient, outbox):
        """Test successful signup returns SignupResponse and no session."""
        response = await client.post(
            "/api/auth/signup",
            json={"email": "contract@example.com", "password": "ContractPass123!"},
        )

        assert response.status_code == 201
        data = response.json()
        assert set(data) == {"message", "email"}
        assert data["email"] == "contract@example.com"
        assert "impactos_session" not in response.cookies

    async def test_signup_invalid_email_response(self, client: AsyncClient):
        """Test signup with a malformed email returns the validation error schema."""
        response = await client.post(
            "/api/auth/signup", json={"email": "not-an-email", "password": "ContractPass123!"}
        )

        assert response.status_code == 422
        data = response.json()
        assert data["error"] == "validation_error"
        assert "message" in data
        assert "email" in data["details"]


@pytest.mark.asyncio
class TestLoginContract:
    """Contract tests for POST /api/auth/login endpoint."""

    async def test_login_success_response_schema(
        self, client: AsyncClient, test_outsider_user: User
    ):
        """Test successful login returns correct response schema."""
        response = await client.post(
            "/api/auth/login",
            json={"email": "outsider@test.com", "password": "TestPass123!"},
        )

        assert response.status_code == 200
        data = response.json()

        # Validate TokenResponse schema
        assert set(data) == {"access_token", "token_type", "expires_in", "redirect_to"}
        assert data["token_type"] == "bearer"
        assert isinstance(data["access_token"], str)
        assert len(data["access_token"]) > 0
        assert isinstance(data["expires_in"], int)

        # Session cookie carries the same token
        set_cookie = response.headers["set-cookie"]
        assert "impactos_session=" in set_cookie
        assert "HttpOnly" in set_cookie

    async def test_login_invalid_credentials_response(
        self, client: AsyncClient, test_outsider_user: User
    ):
        """Test login with invalid credentials returns 401."""
        response = await client.post(
            "/api/auth/login",
            json={"email": "outsider@test.com", "password": "WrongPassword123!"},
        )

        assert response.status_code == 401
        data = response.json()
        assert data["error"] == "unauthenticated"
        assert data["message"] == "Invalid email or password"
        assert "details" not in data

    async def test_login_missing_fields_response(self, client: AsyncClient):
        """Test login with missing fields returns 422."""
        response = await client.post("/api/auth/login", json={"email": "outsider@test.com"})

        assert response.status_code == 422
        assert "password" in response.json()["details"]


@pytest.mark.asyncio
class TestMeContract:
    """Contract tests for GET /api/me endpoint."""

    async def test_me_response_schema(
        self, client: AsyncClient, test_owner_user: User, owner_headers: dict
    ):
        response = await client.get("/api/me", headers=owner_headers)

        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"id", "email", "first_name", "last_name", "created_at"}
        assert data["id"] == str(test_owner_user.id)
        assert data["first_name"] == "Olivia"
        assert data["last_name"] == "Owner"

    async def test_logout_response_schema(self, client: AsyncClient, owner_headers: dict):
        response = await client.post("/api/auth/logout", headers=owner_headers)

        assert response.status_code == 200
        assert response.json() == {"message": "Logged out successfully"}
