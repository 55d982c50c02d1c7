"""FastAPI dependencies for authentication and authorization."""
from collections.abc import Callable

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from impactos.core.config import get_settings
from impactos.core.database import get_db
from impactos.models.enums import MemberRole
from impactos.models.user import User
from impactos.services.access_service import AccessService, OrgContext
from impactos.services.email_service import EmailSender, get_email_sender
from impactos.services.identity_provider import IdentityProvider, LocalIdentityProvider

# Bearer is optional: browsers authenticate with the session cookie instead
security = HTTPBearer(auto_error=False)


def get_identity_provider(db: AsyncSession = Depends(get_db)) -> IdentityProvider:
    return LocalIdentityProvider(db)


def get_mailer() -> EmailSender:
    return get_email_sender()


def get_access_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str | None:
    """Bearer token if present, else the session cookie."""
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(get_settings().session_cookie_name)


async def get_current_user(
    token: str | None = Depends(get_access_token),
    db: AsyncSession = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> User:
    """Get the authenticated user behind the request.

    Raises:
        Unauthenticated: No token, or the token has no live session
    """
    return await AccessService(db, identity).require_auth(token)


def set_active_org_cookie(response: Response, organization_id) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.active_org_cookie_name,
        value=str(organization_id),
        max_age=settings.active_org_cookie_max_age,
        httponly=True,
        secure=settings.secure_cookies,
        samesite=settings.cookie_samesite,
        path="/",
    )


def set_session_cookie(response: Response, access_token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=access_token,
        max_age=settings.session_token_expire_minutes * 60,
        httponly=True,
        secure=settings.secure_cookies,
        samesite=settings.cookie_samesite,
        path="/",
    )


def clear_auth_cookies(response: Response) -> None:
    settings = get_settings()
    response.delete_cookie(settings.session_cookie_name, path="/")
    response.delete_cookie(settings.active_org_cookie_name, path="/")


def require_role(minimum_role: MemberRole) -> Callable:
    """Dependency factory for role-based access control.

    Resolves the caller's active organization and checks their role in it
    against the role hierarchy. When the active organization had to be
    re-derived, the ``active_organization_id`` cookie is rewritten on the
    way out.

    Args:
        minimum_role: Minimum role required for access

    Returns:
        FastAPI dependency function yielding an OrgContext

    Example:
        @router.post("/reports")
        async def create_report(
            ctx: OrgContext = Depends(require_role(MemberRole.EDITOR))
        ):
            # Only EDITOR, ADMIN and OWNER get here
            pass
    """

    async def check_role(
        request: Request,
        response: Response,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
        identity: IdentityProvider = Depends(get_identity_provider),
    ) -> OrgContext:
        """Check the caller's role in their active organization.

        Raises:
            NoOrganization: The caller has no memberships yet
            Forbidden: Role below ``minimum_role``
        """
        cookie = request.cookies.get(get_settings().active_org_cookie_name)
        ctx, active = await AccessService(db, identity).require_role(
            current_user, minimum_role, cookie_value=cookie
        )
        if not active.cookie_in_sync:
            set_active_org_cookie(response, active.organization_id)
        return ctx

    return check_role


def require_viewer() -> Callable:
    """Dependency for endpoints any member may use."""
    return require_role(MemberRole.VIEWER)


def require_editor() -> Callable:
    """Dependency for endpoints that require editor role or higher."""
    return require_role(MemberRole.EDITOR)


def require_admin() -> Callable:
    """Dependency for endpoints that require admin role or higher."""
    return require_role(MemberRole.ADMIN)


def require_owner() -> Callable:
    """Dependency for endpoints reserved to organization owners."""
    return require_role(MemberRole.OWNER)


def get_client_ip(request: Request) -> str | None:
    """Extract client IP address from request.

    Args:
        request: FastAPI request object

    Returns:
        Client IP address or None
    """
    # Try to get real IP from X-Forwarded-For header (if behind proxy)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else None
