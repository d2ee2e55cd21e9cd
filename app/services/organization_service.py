"""
Organization Service

Async administration of organizations and their memberships.
All functions accept an injected AsyncSession; membership operations are
authorized against the caller's OrganizationContext.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.roles import DEFAULT_ROLE, MembershipRole, is_higher_role
from app.exceptions import (
    AccessDeniedError,
    DuplicateResourceError,
    LimitExceededError,
    OrganizationNotFoundError,
    ResourceNotFoundError,
    ValidationError,
)
from app.models.membership import OrganizationMembership
from app.models.organization import (
    ACTIVE_SUBSCRIPTION_STATUSES,
    TIER_LIMITS,
    Organization,
    SubscriptionStatus,
    SubscriptionTier,
)
from app.models.user import User
from app.permissions_config.permissions import MANAGE_MEMBERS, MANAGE_ORGANIZATION
from app.services.tenancy import OrganizationContext, Principal
from app.utils.slugify import is_valid_slug, slugify

logger = logging.getLogger(__name__)


def _require_platform_admin(principal: Principal) -> None:
    if not principal.is_platform_admin:
        raise AccessDeniedError("Only platform administrators may manage organizations")


def _require_permission(context: OrganizationContext, permission: str) -> None:
    if not (context.is_platform_admin or context.has_permission(permission)):
        raise AccessDeniedError(
            "You do not have permission to perform this action",
            details={"required_permission": permission, "role": context.role.value},
        )


# ============== Organizations ==============


async def create_organization(
    name: str,
    principal: Principal,
    db: AsyncSession,
    slug: str | None = None,
    tier: SubscriptionTier = SubscriptionTier.free,
    owner_user_id: int | None = None,
) -> Organization:
    """Create a new organization, optionally with an initial owner."""
    _require_platform_admin(principal)

    if not name or not name.strip():
        raise ValidationError("Organization name cannot be empty", field="name")
    slug = slug.strip().lower() if slug else slugify(name)
    if not is_valid_slug(slug):
        raise ValidationError("Slug must be lowercase letters, digits and hyphens", field="slug")
    if await get_organization_by_slug(slug, db) is not None:
        raise DuplicateResourceError("Organization", "slug", slug)
    if owner_user_id is not None and await db.get(User, owner_user_id) is None:
        raise ResourceNotFoundError("User", owner_user_id)

    max_users, max_storage_mb = TIER_LIMITS[SubscriptionTier(tier)]
    organization = Organization(
        name=name.strip(),
        slug=slug,
        subscription_tier=SubscriptionTier(tier),
        subscription_status=SubscriptionStatus.active,
        max_users=max_users,
        max_storage_mb=max_storage_mb,
    )
    db.add(organization)
    await db.flush()

    if owner_user_id is not None:
        db.add(
            OrganizationMembership(
                user_id=owner_user_id,
                organization_id=organization.id,
                role=MembershipRole.OWNER,
            )
        )

    await db.commit()
    await db.refresh(organization)
    logger.info("Organization created: id=%d slug=%s", organization.id, organization.slug)
    return organization


async def get_organization_by_id(organization_id: int, db: AsyncSession) -> Organization | None:
    """Return an Organization by primary key, or None if not found."""
    result = await db.execute(select(Organization).where(Organization.id == organization_id))
    return result.scalars().first()


async def get_organization_by_slug(slug: str, db: AsyncSession) -> Organization | None:
    """Return an Organization by slug, or None if not found."""
    result = await db.execute(select(Organization).where(Organization.slug == slug))
    return result.scalars().first()


async def list_organizations(
    principal: Principal,
    db: AsyncSession,
    skip: int = 0,
    limit: int = 20,
) -> list[Organization]:
    """Return a paginated list of all organizations (any status)."""
    _require_platform_admin(principal)
    result = await db.execute(select(Organization).order_by(Organization.id).offset(skip).limit(limit))
    return list(result.scalars().all())


async def update_organization(context: OrganizationContext, updates: dict, db: AsyncSession) -> Organization:
    """
    Apply a partial update to the context's organization.

    Only owners (and platform admins) may change the organization itself;
    tier and user limits are reserved for platform admins.
    """
    _require_permission(context, MANAGE_ORGANIZATION)
    organization = await get_organization_by_id(context.organization_id, db)
    if organization is None:
        raise OrganizationNotFoundError(context.organization_id)

    allowed_fields = {"name"}
    if context.is_platform_admin:
        allowed_fields |= {"subscription_tier", "max_users", "max_storage_mb"}

    for field, value in updates.items():
        if value is None:
            continue
        if field not in allowed_fields:
            raise AccessDeniedError(f"Field '{field}' cannot be changed by your role")
        if field == "name" and not str(value).strip():
            raise ValidationError("Organization name cannot be empty", field="name")
        if field in ("max_users", "max_storage_mb") and int(value) < 1:
            raise ValidationError(f"{field} must be positive", field=field)
        if field == "subscription_tier":
            value = SubscriptionTier(value)
        setattr(organization, field, value)

    await db.commit()
    await db.refresh(organization)
    logger.info("Organization updated: id=%d fields=%s", organization.id, sorted(updates))
    return organization


async def set_subscription_status(
    organization_id: int,
    status: SubscriptionStatus,
    principal: Principal,
    db: AsyncSession,
) -> Organization:
    _require_platform_admin(principal)
    organization = await get_organization_by_id(organization_id, db)
    if organization is None:
        raise OrganizationNotFoundError(organization_id)
    organization.subscription_status = SubscriptionStatus(status)
    await db.commit()
    await db.refresh(organization)
    logger.info("Organization %d subscription status set to %s", organization.id, organization.subscription_status.value)
    return organization


async def suspend_organization(organization_id: int, principal: Principal, db: AsyncSession) -> Organization:
    """Suspended organizations stop resolving for their members."""
    return await set_subscription_status(organization_id, SubscriptionStatus.suspended, principal, db)


async def reactivate_organization(organization_id: int, principal: Principal, db: AsyncSession) -> Organization:
    return await set_subscription_status(organization_id, SubscriptionStatus.active, principal, db)


# ============== Memberships ==============


async def list_members(context: OrganizationContext, db: AsyncSession, include_inactive: bool = False):
    query = select(OrganizationMembership).where(OrganizationMembership.organization_id == context.organization_id)
    if not include_inactive:
        query = query.where(OrganizationMembership.is_active.is_(True))
    result = await db.execute(query.order_by(OrganizationMembership.joined_at, OrganizationMembership.id))
    return list(result.scalars().unique().all())


async def count_active_members(organization_id: int, db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count(OrganizationMembership.id)).where(
            OrganizationMembership.organization_id == organization_id,
            OrganizationMembership.is_active.is_(True),
        )
    )
    return int(result.scalar_one())


async def add_member(
    context: OrganizationContext,
    user_id: int,
    db: AsyncSession,
    role: MembershipRole = DEFAULT_ROLE,
) -> OrganizationMembership:
    """
    Add a user to the context's organization.

    A user may belong to many organizations but holds one membership per
    organization. A previously deactivated membership is reactivated.
    """
    _require_permission(context, MANAGE_MEMBERS)
    role = MembershipRole(role)
    _check_can_grant(context, role)

    organization = await get_organization_by_id(context.organization_id, db)
    if organization is None:
        raise OrganizationNotFoundError(context.organization_id)
    if await db.get(User, user_id) is None:
        raise ResourceNotFoundError("User", user_id)

    result = await db.execute(
        select(OrganizationMembership).where(
            OrganizationMembership.user_id == user_id,
            OrganizationMembership.organization_id == context.organization_id,
        )
    )
    membership = result.scalars().first()
    if membership is not None and membership.is_active:
        raise DuplicateResourceError("OrganizationMembership", "user_id", user_id)

    active = await count_active_members(context.organization_id, db)
    if active >= organization.max_users:
        raise LimitExceededError("max_users", organization.max_users)

    if membership is None:
        membership = OrganizationMembership(
            user_id=user_id,
            organization_id=context.organization_id,
            role=role,
        )
        db.add(membership)
    else:
        membership.is_active = True
        membership.role = role

    await db.commit()
    await db.refresh(membership)
    logger.info(
        "User %d added to organization %d as %s by user %d",
        user_id,
        context.organization_id,
        role.value,
        context.principal_id,
    )
    return membership


async def change_member_role(
    context: OrganizationContext,
    membership_id: int,
    role: MembershipRole,
    db: AsyncSession,
) -> OrganizationMembership:
    _require_permission(context, MANAGE_MEMBERS)
    role = MembershipRole(role)
    _check_can_grant(context, role)

    membership = await _get_membership(context, membership_id, db)
    if is_higher_role(membership.role, context.role) and not context.is_platform_admin:
        raise AccessDeniedError("You cannot change the role of a member above your own role")
    if membership.role == MembershipRole.OWNER and role != MembershipRole.OWNER:
        await _ensure_not_last_owner(context, membership, db)

    membership.role = role
    await db.commit()
    await db.refresh(membership)
    logger.info("Membership %d role changed to %s in organization %d", membership.id, role.value, context.organization_id)
    return membership


async def deactivate_member(context: OrganizationContext, membership_id: int, db: AsyncSession) -> OrganizationMembership:
    _require_permission(context, MANAGE_MEMBERS)
    membership = await _get_membership(context, membership_id, db)
    if is_higher_role(membership.role, context.role) and not context.is_platform_admin:
        raise AccessDeniedError("You cannot deactivate a member above your own role")
    if membership.role == MembershipRole.OWNER:
        await _ensure_not_last_owner(context, membership, db)

    membership.is_active = False
    membership.is_default = False
    await db.commit()
    await db.refresh(membership)
    logger.info("Membership %d deactivated in organization %d", membership.id, context.organization_id)
    return membership


async def list_user_organizations(principal: Principal, db: AsyncSession) -> list[OrganizationMembership]:
    """Active memberships of the principal in organizations that accept requests."""
    result = await db.execute(
        select(OrganizationMembership)
        .join(Organization, OrganizationMembership.organization_id == Organization.id)
        .where(
            OrganizationMembership.user_id == principal.user_id,
            OrganizationMembership.is_active.is_(True),
            Organization.subscription_status.in_(ACTIVE_SUBSCRIPTION_STATUSES),
        )
        .order_by(Organization.name)
    )
    return list(result.scalars().unique().all())


async def set_default_organization(context: OrganizationContext, db: AsyncSession) -> OrganizationMembership:
    """Make the context's membership the principal's default one."""
    if context.membership_id is None:
        raise ValidationError("Platform administrators have no membership to mark as default")
    result = await db.execute(
        select(OrganizationMembership).where(
            OrganizationMembership.user_id == context.principal_id,
            OrganizationMembership.is_default.is_(True),
        )
    )
    for membership in result.scalars().unique().all():
        membership.is_default = False
    membership = await db.get(OrganizationMembership, context.membership_id)
    membership.is_default = True
    await db.commit()
    await db.refresh(membership)
    return membership


# ============== Private Helpers ==============


def _check_can_grant(context: OrganizationContext, role: MembershipRole) -> None:
    if context.is_platform_admin:
        return
    if role == MembershipRole.OWNER and context.role != MembershipRole.OWNER:
        raise AccessDeniedError("Only owners may grant the owner role")
    if is_higher_role(role, context.role):
        raise AccessDeniedError("You cannot grant a role above your own")


async def _get_membership(context: OrganizationContext, membership_id: int, db: AsyncSession) -> OrganizationMembership:
    result = await db.execute(
        select(OrganizationMembership).where(
            OrganizationMembership.id == membership_id,
            OrganizationMembership.organization_id == context.organization_id,
        )
    )
    membership = result.scalars().first()
    if membership is None:
        raise ResourceNotFoundError("OrganizationMembership", membership_id)
    return membership


async def _ensure_not_last_owner(
    context: OrganizationContext, membership: OrganizationMembership, db: AsyncSession
) -> None:
    result = await db.execute(
        select(func.count(OrganizationMembership.id)).where(
            OrganizationMembership.organization_id == context.organization_id,
            OrganizationMembership.role == MembershipRole.OWNER,
            OrganizationMembership.is_active.is_(True),
            OrganizationMembership.id != membership.id,
        )
    )
    if int(result.scalar_one()) == 0:
        raise ValidationError("An organization must keep at least one active owner")
