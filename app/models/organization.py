"""
Organization model: the tenant boundary.

Each Organization is an isolated client account. Row-level isolation is
enforced through the organization_id column on every per-tenant table.
Organizations are never hard-deleted; they are disabled by moving the
subscription status out of the active set.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, Index, Integer, String
from sqlalchemy.orm import relationship

from app.database import Base


class SubscriptionTier(str, enum.Enum):
    free = "free"
    pro = "pro"
    enterprise = "enterprise"


class SubscriptionStatus(str, enum.Enum):
    active = "active"
    trialing = "trialing"
    past_due = "past_due"
    suspended = "suspended"
    cancelled = "cancelled"


# Organizations in these states accept requests
ACTIVE_SUBSCRIPTION_STATUSES = frozenset(
    {SubscriptionStatus.active, SubscriptionStatus.trialing, SubscriptionStatus.past_due}
)

# Default limits per tier (max users, storage in MB)
TIER_LIMITS = {
    SubscriptionTier.free: (5, 1024),
    SubscriptionTier.pro: (25, 10240),
    SubscriptionTier.enterprise: (250, 102400),
}


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(100), nullable=False, unique=True, index=True)  # URL-safe, e.g. "acme"
    subscription_tier = Column(Enum(SubscriptionTier), nullable=False, default=SubscriptionTier.free)
    subscription_status = Column(Enum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.active)
    max_users = Column(Integer, nullable=False, default=5)
    max_storage_mb = Column(Integer, nullable=False, default=1024)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    memberships = relationship("OrganizationMembership", back_populates="organization", lazy="select")

    __table_args__ = (Index("idx_organization_status", "subscription_status"),)

    @property
    def is_active(self) -> bool:
        return self.subscription_status in ACTIVE_SUBSCRIPTION_STATUSES

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, slug={self.slug}, status={self.subscription_status})>"
