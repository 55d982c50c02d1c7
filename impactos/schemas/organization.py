"""Pydantic schemas for organization endpoints."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CreateOrganizationRequest(BaseModel):
    """Request schema for creating an organization.

    Used for POST /api/organizations. The caller becomes its owner.
    """

    name: str = Field(..., min_length=2, max_length=255, description="Organization display name")

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        """Strip whitespace and re-check the minimum length."""
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Organization name must be at least 2 characters")
        return v


class DeleteOrganizationRequest(BaseModel):
    """Request body for DELETE /api/organizations/{id}."""

    confirmation: str = Field(..., description='Must be exactly "DELETE"')


class OrganizationResponse(BaseModel):
    """Response schema for organization endpoints."""

    id: UUID = Field(..., description="Organization unique identifier")
    name: str = Field(..., description="Organization display name")
    slug: str = Field(..., description="URL-safe unique identifier")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last modification timestamp")

    model_config = ConfigDict(from_attributes=True)


class UserOrganizationResponse(BaseModel):
    """One entry of the organization switcher."""

    id: UUID
    name: str
    slug: str
    role: str = Field(..., description="Caller's role in this organization")
    joined_at: datetime
    is_active: bool = Field(False, description="Whether this is the caller's active organization")


class OrganizationListResponse(BaseModel):
    organizations: list[UserOrganizationResponse] = Field(default_factory=list)
    active_organization_id: UUID | None = None


class TenantConfigResponse(BaseModel):
    feature_company_updates: bool
    feature_interactions: bool
    feature_advisor_profiles: bool
    feature_fireflies: bool
    feature_commitment_tracking: bool
    feature_ai_integration: bool
    ai_features: dict = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)


class CurrentOrganizationResponse(BaseModel):
    """Active organization plus the caller's role in it."""

    organization: OrganizationResponse
    role: str
    config: TenantConfigResponse | None = None
