"""
Organization Routes

POST   /api/v1/organizations                      → create organization (platform admin)
GET    /api/v1/organizations                      → list organizations (platform admin)
GET    /api/v1/organizations/mine                 → the caller's organizations
GET    /api/v1/organizations/current              → the resolved organization context
POST   /api/v1/organizations/current/select       → remember the organization as last used
PATCH  /api/v1/organizations/current              → update the organization
GET    /api/v1/organizations/current/members      → list members
POST   /api/v1/organizations/current/members      → add a member
PATCH  /api/v1/organizations/current/members/{id} → change a member's role
DELETE /api/v1/organizations/current/members/{id} → deactivate a member
POST   /api/v1/organizations/{id}/suspend         → suspend (platform admin)
POST   /api/v1/organizations/{id}/reactivate      → reactivate (platform admin)

"current" is whichever organization the X-Organization header (or the
caller's default membership) resolves to.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_principal, get_organization_context
from app.database import get_db
from app.exceptions import OrganizationNotFoundError
from app.schemas.organization import (
    MembershipCreate,
    MembershipResponse,
    MembershipRoleUpdate,
    MyOrganizationResponse,
    OrganizationContextResponse,
    OrganizationCreate,
    OrganizationResponse,
    OrganizationUpdate,
)
from app.services import organization_service
from app.services.tenancy import OrganizationContext, Principal, remember_organization

router = APIRouter(prefix="/organizations", tags=["Organizations"])
logger = logging.getLogger(__name__)


@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    data: OrganizationCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await organization_service.create_organization(
        name=data.name,
        principal=principal,
        db=db,
        slug=data.slug,
        tier=data.subscription_tier,
        owner_user_id=data.owner_user_id,
    )


@router.get("", response_model=list[OrganizationResponse])
async def list_organizations(
    skip: int = 0,
    limit: int = 20,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await organization_service.list_organizations(principal, db, skip=skip, limit=limit)


@router.get("/mine", response_model=list[MyOrganizationResponse])
async def list_my_organizations(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    memberships = await organization_service.list_user_organizations(principal, db)
    return [
        MyOrganizationResponse(
            organization_id=m.organization_id,
            name=m.organization.name,
            slug=m.organization.slug,
            role=m.role,
            is_default=m.is_default,
            last_used_at=m.last_used_at,
        )
        for m in memberships
    ]


@router.get("/current", response_model=OrganizationContextResponse)
async def get_current_organization(context: OrganizationContext = Depends(get_organization_context)):
    return OrganizationContextResponse(
        organization_id=context.organization_id,
        organization_slug=context.organization_slug,
        role=context.role,
        permissions=sorted(context.permissions),
        is_platform_admin=context.is_platform_admin,
    )


@router.post("/current/select", response_model=OrganizationContextResponse)
async def select_organization(
    make_default: bool = False,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Record the resolved organization as the caller's preference.

    The preference is only consulted when a later request carries no
    X-Organization header.
    """
    await remember_organization(db, context)
    if make_default:
        await organization_service.set_default_organization(context, db)
    return await get_current_organization(context)


@router.patch("/current", response_model=OrganizationResponse)
async def update_organization(
    data: OrganizationUpdate,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await organization_service.update_organization(context, data.model_dump(exclude_unset=True), db)


@router.get("/current/members", response_model=list[MembershipResponse])
async def list_members(
    include_inactive: bool = False,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await organization_service.list_members(context, db, include_inactive=include_inactive)


@router.post("/current/members", response_model=MembershipResponse, status_code=status.HTTP_201_CREATED)
async def add_member(
    data: MembershipCreate,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await organization_service.add_member(context, data.user_id, db, role=data.role)


@router.patch("/current/members/{membership_id}", response_model=MembershipResponse)
async def change_member_role(
    membership_id: int,
    data: MembershipRoleUpdate,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await organization_service.change_member_role(context, membership_id, data.role, db)


@router.delete("/current/members/{membership_id}", response_model=MembershipResponse)
async def deactivate_member(
    membership_id: int,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await organization_service.deactivate_member(context, membership_id, db)


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Platform admins see any organization; members see their own."""
    if not principal.is_platform_admin:
        memberships = await organization_service.list_user_organizations(principal, db)
        if organization_id not in {m.organization_id for m in memberships}:
            raise OrganizationNotFoundError(organization_id)
    organization = await organization_service.get_organization_by_id(organization_id, db)
    if organization is None:
        raise OrganizationNotFoundError(organization_id)
    return organization


@router.post("/{organization_id}/suspend", response_model=OrganizationResponse)
async def suspend_organization(
    organization_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await organization_service.suspend_organization(organization_id, principal, db)


@router.post("/{organization_id}/reactivate", response_model=OrganizationResponse)
async def reactivate_organization(
    organization_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await organization_service.reactivate_organization(organization_id, principal, db)
