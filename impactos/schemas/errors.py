"""Error response schema shared by every /api endpoint."""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class ErrorResponse(BaseModel):
    """Standard error response schema.

    Used for all error responses (4xx, 5xx) across the API.
    """

    error: str = Field(
        ...,
        description="Error type identifier",
        examples=["unauthenticated", "forbidden", "invitation_expired"]
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
        examples=["Authentication required", "Invitation has expired"]
    )
    details: Optional[dict] = Field(
        None,
        description="Additional error context (field validation errors, etc.)",
        examples=[{"field": "confirmation"}]
    )
    redirect_to: Optional[str] = Field(
        None,
        description="Where a browser client should navigate next",
        examples=["/onboarding"]
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "error": "no_organization",
                    "message": "User has no organization memberships. Please create or join an organization.",
                    "redirect_to": "/onboarding"
                },
                {
                    "error": "forbidden",
                    "message": "This action requires the admin role or higher",
                    "details": {"required_role": "admin", "current_role": "viewer"}
                },
                {
                    "error": "validation_error",
                    "message": "Request validation failed",
                    "details": {
                        "email": "value is not a valid email address"
                    }
                }
            ]
        }
    )
