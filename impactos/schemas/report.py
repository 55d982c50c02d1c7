"""Pydantic schemas for report endpoints."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ReportCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field("", description="Markdown body")


class ReportResponse(BaseModel):
    id: UUID
    organization_id: UUID
    title: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SidebarPreferenceRequest(BaseModel):
    """Request schema for PUT /api/preferences/sidebar."""

    open: bool = Field(..., description="Whether the sidebar is expanded")
