"""Organization API endpoints: list, create, current, delete."""
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from impactos.api.deps import (
    get_current_user,
    get_identity_provider,
    require_viewer,
    set_active_org_cookie,
)
from impactos.core.config import get_settings
from impactos.core.database import get_db
from impactos.core.errors import NoOrganization
from impactos.models.user import User
from impactos.schemas.organization import (
    CreateOrganizationRequest,
    CurrentOrganizationResponse,
    DeleteOrganizationRequest,
    OrganizationListResponse,
    OrganizationResponse,
    TenantConfigResponse,
    UserOrganizationResponse,
)
from impactos.services.access_service import OrgContext
from impactos.services.identity_provider import IdentityProvider
from impactos.services.org_service import OrganizationService
from impactos.services.session_service import SessionService

router = APIRouter()


@router.get(
    "",
    response_model=OrganizationListResponse,
    summary="List the caller's organizations",
    description="Organizations the caller belongs to, oldest membership first.",
)
async def list_organizations(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OrganizationListResponse:
    sessions = SessionService(db)
    organizations = await sessions.get_user_organizations(current_user.id)

    active_id = None
    if organizations:
        cookie = request.cookies.get(get_settings().active_org_cookie_name)
        active_id = await sessions.get_active_organization_id(current_user.id, cookie)

    return OrganizationListResponse(
        organizations=[
            UserOrganizationResponse(
                id=entry.organization.id,
                name=entry.organization.name,
                slug=entry.organization.slug,
                role=entry.role.value,
                joined_at=entry.joined_at,
                is_active=entry.organization.id == active_id,
            )
            for entry in organizations
        ],
        active_organization_id=active_id,
    )


@router.post(
    "",
    response_model=OrganizationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create organization",
    description="Creates an organization owned by the caller and makes it active.",
)
async def create_organization(
    request: CreateOrganizationRequest,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> OrganizationResponse:
    """Create an organization (onboarding).

    Raises:
        ValidationFailed: Name shorter than 2 characters after stripping
        ConstraintViolation: Slug collision survived the retry
    """
    service = OrganizationService(db, identity)
    organization = await service.create(current_user, request.name)
    await db.commit()

    set_active_org_cookie(response, organization.id)
    return OrganizationResponse.model_validate(organization)


@router.get(
    "/current",
    response_model=CurrentOrganizationResponse,
    summary="Active organization",
    description="The caller's active organization, role and feature configuration.",
)
async def get_current_organization(
    ctx: OrgContext = Depends(require_viewer()),
    db: AsyncSession = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> CurrentOrganizationResponse:
    service = OrganizationService(db, identity)
    organization = await service.get_by_id(ctx.organization_id)
    config = await service.get_config(ctx.organization_id)
    await db.commit()
    return CurrentOrganizationResponse(
        organization=OrganizationResponse.model_validate(organization),
        role=ctx.role.value,
        config=TenantConfigResponse.model_validate(config) if config else None,
    )


@router.delete(
    "/{organization_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete organization",
    description='Owner only. Body must carry {"confirmation": "DELETE"}.',
)
async def delete_organization(
    organization_id: UUID,
    request: DeleteOrganizationRequest,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> None:
    """Delete an organization and every record it owns.

    Raises:
        ValidationFailed: Confirmation is not the exact literal
        Forbidden: Caller is not an owner of this organization
        NotFound: No such organization
    """
    service = OrganizationService(db, identity)
    await service.delete(current_user, organization_id, request.confirmation)
    await db.commit()

    # Fall over to another membership if the caller has one
    try:
        active_id = await SessionService(db).get_active_organization_id(current_user.id)
    except NoOrganization:
        response.delete_cookie(get_settings().active_org_cookie_name, path="/")
    else:
        set_active_org_cookie(response, active_id)
        await db.commit()
