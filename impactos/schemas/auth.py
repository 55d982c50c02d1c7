"""Pydantic schemas for authentication endpoints."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class SignupRequest(BaseModel):
    """Request schema for POST /api/auth/signup."""

    email: EmailStr = Field(..., description="Account email address")
    password: str = Field(..., min_length=8, description="Account password")
    first_name: str = Field("", max_length=100)
    last_name: str = Field("", max_length=100)


class SignupResponse(BaseModel):
    message: str = Field(
        default="Check your email to confirm your account",
        description="Next step for the user",
    )
    email: str


class LoginRequest(BaseModel):
    """Request schema for POST /api/auth/login."""

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")
    next: str | None = Field(None, description="Internal path to continue to after login")


class TokenResponse(BaseModel):
    """Response schema for endpoints that open a session.

    The same token is also set as the session cookie.
    """

    access_token: str = Field(..., description="JWT session token for API authentication")
    token_type: str = Field(default="bearer", description="Token type (always 'bearer')")
    expires_in: int | None = Field(default=None, description="Seconds until the token expires")
    redirect_to: str = Field(default="/dashboard", description="Safe internal path to navigate to")


class UserResponse(BaseModel):
    """Response schema for GET /api/me."""

    id: UUID = Field(..., description="User unique identifier")
    email: str = Field(..., description="User email address")
    first_name: str = ""
    last_name: str = ""
    created_at: datetime = Field(..., description="Account creation timestamp")

    model_config = ConfigDict(from_attributes=True)


class LogoutResponse(BaseModel):
    message: str = Field(
        default="Logged out successfully", description="Logout confirmation message"
    )


class LoginPageResponse(BaseModel):
    """What the login page renders for a ``?error=`` reason code."""

    error: str | None = None
    message: str | None = None
