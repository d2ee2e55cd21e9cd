"""
Organization membership model.

Binds a User to an Organization with an organization-scoped role. A user
may hold independent memberships (and roles) in several organizations.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Index, Integer
from sqlalchemy.orm import relationship

from app.constants.roles import MembershipRole
from app.database import Base
from app.permissions_config.permissions import get_role_permissions


class OrganizationMembership(Base):
    __tablename__ = "organization_memberships"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    organization_id = Column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role = Column(Enum(MembershipRole), nullable=False, default=MembershipRole.MEMBER)
    is_active = Column(Boolean, default=True, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    # Written only by an explicit "select organization" call, never by resolution
    last_used_at = Column(DateTime, nullable=True)
    joined_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    user = relationship("User", back_populates="memberships", lazy="joined")
    organization = relationship("Organization", back_populates="memberships", lazy="joined")

    __table_args__ = (
        Index("ix_memberships_user_org", "user_id", "organization_id", unique=True),
        Index("ix_memberships_org_active", "organization_id", "is_active"),
    )

    @property
    def permissions(self) -> frozenset[str]:
        return get_role_permissions(self.role)

    def __repr__(self) -> str:
        return f"<OrganizationMembership(user={self.user_id}, org={self.organization_id}, role={self.role})>"
