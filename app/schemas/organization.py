from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.constants.roles import DEFAULT_ROLE, MembershipRole
from app.models.organization import SubscriptionStatus, SubscriptionTier


class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description="Display name of the organization.")
    slug: str | None = Field(None, max_length=100, description="URL-safe identifier; derived from the name when omitted.")
    subscription_tier: SubscriptionTier = SubscriptionTier.free
    owner_user_id: int | None = Field(None, description="User who becomes the first owner.")


class OrganizationUpdate(BaseModel):
    name: str | None = Field(None, max_length=200)
    subscription_tier: SubscriptionTier | None = None
    max_users: int | None = Field(None, ge=1)
    max_storage_mb: int | None = Field(None, ge=1)


class OrganizationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    subscription_tier: SubscriptionTier
    subscription_status: SubscriptionStatus
    max_users: int
    max_storage_mb: int
    created_at: datetime


class MembershipCreate(BaseModel):
    user_id: int
    role: MembershipRole = DEFAULT_ROLE


class MembershipRoleUpdate(BaseModel):
    role: MembershipRole


class MembershipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    organization_id: int
    role: MembershipRole
    is_active: bool
    is_default: bool
    last_used_at: datetime | None = None
    joined_at: datetime


class MyOrganizationResponse(BaseModel):
    """One of the caller's organizations, with the caller's role in it."""

    organization_id: int
    name: str
    slug: str
    role: MembershipRole
    is_default: bool
    last_used_at: datetime | None = None


class OrganizationContextResponse(BaseModel):
    organization_id: int
    organization_slug: str
    role: MembershipRole
    permissions: list[str]
    is_platform_admin: bool
