"""
Tenancy Resolver

Determines the single organization a request operates on. Every service
receives the resulting OrganizationContext explicitly; nothing in the
process remembers a "current organization" between requests.

Resolution order:
  1. platform admin + explicit selector -> that organization, admin role
  2. explicit selector -> the principal's active membership there, else AccessDenied
  3. no selector -> default membership, then most recently used, then oldest
  4. no active membership -> NoOrganizationContext
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.roles import MembershipRole
from app.exceptions import AccessDeniedError, NoOrganizationContextError, OrganizationNotFoundError
from app.models.membership import OrganizationMembership
from app.models.organization import ACTIVE_SUBSCRIPTION_STATUSES, Organization
from app.permissions_config.permissions import get_role_permissions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """An authenticated caller."""

    user_id: int
    email: str | None = None
    is_platform_admin: bool = False


@dataclass(frozen=True)
class OrganizationContext:
    """
    The resolved tenant for one request.

    Immutable, so it can be shared by every component handling the request.
    membership_id is None when a platform admin entered an organization
    without being a member of it.
    """

    organization_id: int
    organization_slug: str
    role: MembershipRole
    principal_id: int
    permissions: frozenset[str] = field(default_factory=frozenset)
    membership_id: int | None = None
    is_platform_admin: bool = False

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions

    def has_role(self, roles) -> bool:
        return self.role in roles


OrganizationSelector = int | str


def _parse_selector(selector: OrganizationSelector) -> tuple[int | None, str | None]:
    """Split a selector into (id, slug); numeric strings are treated as ids."""
    if isinstance(selector, int):
        return selector, None
    text = selector.strip()
    if text.isdigit():
        return int(text), None
    return None, text


class TenancyResolver:
    """Resolves principals to organization contexts. Performs no writes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve(
        self,
        principal: Principal,
        selector: OrganizationSelector | None = None,
    ) -> OrganizationContext:
        if selector is not None and str(selector).strip():
            return await self._resolve_explicit(principal, selector)
        return await self._resolve_default(principal)

    async def _resolve_explicit(self, principal: Principal, selector: OrganizationSelector) -> OrganizationContext:
        organization = await self._find_organization(selector)

        if principal.is_platform_admin:
            if organization is None:
                raise OrganizationNotFoundError(selector)
            logger.info(
                "Platform admin %d entered organization %d (%s)",
                principal.user_id,
                organization.id,
                organization.slug,
            )
            return OrganizationContext(
                organization_id=organization.id,
                organization_slug=organization.slug,
                role=MembershipRole.ADMIN,
                principal_id=principal.user_id,
                permissions=get_role_permissions(MembershipRole.ADMIN),
                membership_id=None,
                is_platform_admin=True,
            )

        # Unknown organizations and foreign organizations look the same to the caller
        membership = None
        if organization is not None and organization.subscription_status in ACTIVE_SUBSCRIPTION_STATUSES:
            membership = await self._active_membership(principal.user_id, organization.id)
        if membership is None:
            logger.warning("Access denied: user %d has no active membership for %r", principal.user_id, selector)
            raise AccessDeniedError(
                "You are not an active member of the requested organization",
                details={"organization": str(selector)},
            )
        return self._context_from_membership(principal, membership, organization)

    async def _resolve_default(self, principal: Principal) -> OrganizationContext:
        result = await self.db.execute(
            select(OrganizationMembership, Organization)
            .join(Organization, OrganizationMembership.organization_id == Organization.id)
            .where(
                OrganizationMembership.user_id == principal.user_id,
                OrganizationMembership.is_active.is_(True),
                Organization.subscription_status.in_(ACTIVE_SUBSCRIPTION_STATUSES),
            )
            .order_by(
                OrganizationMembership.is_default.desc(),
                OrganizationMembership.last_used_at.is_(None),
                OrganizationMembership.last_used_at.desc(),
                OrganizationMembership.joined_at.asc(),
                OrganizationMembership.id.asc(),
            )
            .limit(1)
        )
        row = result.first()
        if row is None:
            raise NoOrganizationContextError()
        membership, organization = row
        return self._context_from_membership(principal, membership, organization)

    async def _find_organization(self, selector: OrganizationSelector) -> Organization | None:
        organization_id, slug = _parse_selector(selector)
        if organization_id is not None:
            query = select(Organization).where(Organization.id == organization_id)
        else:
            query = select(Organization).where(Organization.slug == slug)
        result = await self.db.execute(query)
        return result.scalars().first()

    async def _active_membership(self, user_id: int, organization_id: int) -> OrganizationMembership | None:
        result = await self.db.execute(
            select(OrganizationMembership).where(
                OrganizationMembership.user_id == user_id,
                OrganizationMembership.organization_id == organization_id,
                OrganizationMembership.is_active.is_(True),
            )
        )
        return result.scalars().first()

    @staticmethod
    def _context_from_membership(
        principal: Principal,
        membership: OrganizationMembership,
        organization: Organization,
    ) -> OrganizationContext:
        return OrganizationContext(
            organization_id=organization.id,
            organization_slug=organization.slug,
            role=membership.role,
            principal_id=principal.user_id,
            permissions=get_role_permissions(membership.role),
            membership_id=membership.id,
            is_platform_admin=principal.is_platform_admin,
        )


async def remember_organization(db: AsyncSession, context: OrganizationContext) -> None:
    """Persist the context's organization as the principal's most recently used one."""
    if context.membership_id is None:
        return
    await db.execute(
        update(OrganizationMembership)
        .where(
            OrganizationMembership.id == context.membership_id,
            OrganizationMembership.user_id == context.principal_id,
        )
        .values(last_used_at=datetime.now(timezone.utc))
    )
    await db.commit()
    logger.debug("User %d last used organization %d", context.principal_id, context.organization_id)
