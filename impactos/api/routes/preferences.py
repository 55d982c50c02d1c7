"""UI preference endpoints."""

from fastapi import APIRouter, Depends, Response

from impactos.api.deps import get_current_user
from impactos.core.config import get_settings
from impactos.models.user import User
from impactos.schemas.report import SidebarPreferenceRequest

router = APIRouter()


@router.put("/sidebar")
async def set_sidebar_state(
    preference: SidebarPreferenceRequest,
    response: Response,
    current_user: User = Depends(get_current_user),
):
    """Remember whether the sidebar is expanded (readable by the client)."""
    settings = get_settings()
    value = "true" if preference.open else "false"
    response.set_cookie(
        key=settings.sidebar_cookie_name,
        value=value,
        max_age=settings.sidebar_cookie_max_age,
        httponly=False,
        secure=settings.secure_cookies,
        samesite=settings.cookie_samesite,
        path="/",
    )
    return {"sidebar_state": value}
