"""Pydantic schemas for invitation endpoints."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from impactos.models.enums import MemberRole


class InviteRequest(BaseModel):
    """Request schema for POST /api/invitations."""

    email: EmailStr = Field(..., description="Email address of the person to invite")
    role: MemberRole = Field(..., description="Role to grant (admin, editor or viewer)")


class InvitationResponse(BaseModel):
    """An issued invitation. The token is only ever shown to admins."""

    id: UUID = Field(..., description="Invitation unique identifier")
    email: str = Field(..., description="Invitee email address")
    role: MemberRole = Field(..., description="Granted role")
    organization_id: UUID
    expires_at: datetime = Field(..., description="Invitation expiry timestamp")
    created_at: datetime
    invite_url: str | None = Field(None, description="Link sent in the email")

    model_config = ConfigDict(from_attributes=True)


class InvitationListResponse(BaseModel):
    invitations: list[InvitationResponse] = Field(default_factory=list)
    total: int


class InvitationSummaryResponse(BaseModel):
    """Public summary rendered on the accept-invite page."""

    email: str
    role: MemberRole
    organization_name: str
    status: str = Field(..., description="pending, accepted or expired")
    expires_at: datetime


class AcceptInviteResponse(BaseModel):
    organization_id: UUID
    role: MemberRole
    redirect_to: str = "/dashboard"


class InviteSignupRequest(BaseModel):
    """Request schema for POST /accept-invite/{token}/signup."""

    email: EmailStr = Field(..., description="Must match the invited address")
    password: str = Field(..., min_length=8, description="Password for the new account")
    first_name: str = Field("", max_length=100)
    last_name: str = Field("", max_length=100)
