"""FastAPI application entry point."""

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from impactos.api.deps import get_current_user
from impactos.api.errors import register_exception_handlers
from impactos.api.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from impactos.api.routes import (
    accept_invite,
    auth,
    invitations,
    metrics,
    organizations,
    pages,
    preferences,
    reports,
    team,
)
from impactos.core.config import get_settings
from impactos.models.user import User
from impactos.schemas.auth import UserResponse

settings = get_settings()
docs_enabled = settings.api_docs_enabled
if docs_enabled is None:
    docs_enabled = settings.environment != "production"

app = FastAPI(
    title="impact OS API",
    description="Organizations, membership, invitations and access control for impact OS",
    version="1.0.0",
    docs_url="/api/docs" if docs_enabled else None,
    redoc_url="/api/redoc" if docs_enabled else None,
    openapi_url="/api/openapi.json" if docs_enabled else None,
)

register_exception_handlers(app)

# Middleware configuration (order matters - applied in reverse order)
# 1. Request logging (outermost - logs all requests)
app.add_middleware(RequestLoggingMiddleware)

# 2. Security headers
app.add_middleware(SecurityHeadersMiddleware)

# 3. Rate limiting (applied before routing)
app.add_middleware(RateLimitMiddleware)

# 4. CORS (applied after rate limiting)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(organizations.router, prefix="/api/organizations", tags=["organizations"])
app.include_router(invitations.router, prefix="/api/invitations", tags=["invitations"])
app.include_router(team.router, prefix="/api/team", tags=["team"])
app.include_router(reports.router, prefix="/api/reports", tags=["reports"])
app.include_router(preferences.router, prefix="/api/preferences", tags=["preferences"])
app.include_router(metrics.router, prefix="/api", tags=["metrics"])
app.include_router(accept_invite.router, prefix="/accept-invite", tags=["invitations"])
app.include_router(pages.router, tags=["pages"])


@app.get("/api/me", response_model=UserResponse, tags=["auth"])
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current user information."""
    return UserResponse.model_validate(current_user)
