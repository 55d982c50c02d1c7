"""Pydantic schemas for team management endpoints."""
from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict

from impactos.models.enums import MemberRole


class TeamMemberResponse(BaseModel):
    """A member of the active organization."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID = Field(..., description="User unique identifier")
    email: str = Field(..., description="User email address")
    first_name: str = ""
    last_name: str = ""
    role: MemberRole = Field(..., description="Role in the organization")
    joined_at: datetime = Field(..., description="Membership creation timestamp")


class TeamMemberListResponse(BaseModel):
    members: list[TeamMemberResponse] = Field(default_factory=list)
    total: int = Field(..., description="Total number of members")


class MemberRoleUpdateRequest(BaseModel):
    """Request schema for PATCH /api/team/members/{user_id}."""

    role: MemberRole = Field(..., description="New role (owner, admin, editor, viewer)")
