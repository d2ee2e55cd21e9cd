"""
Delivery plan model

An organization's content calendar: a dated bucket that ideas are
assigned to so progress towards the agreed deliverables can be tracked.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, Index, Integer, String, Text

from app.database import Base


class DeliveryPlanStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


CLOSED_PLAN_STATUSES = frozenset({DeliveryPlanStatus.COMPLETED, DeliveryPlanStatus.CANCELLED})


class DeliveryPlan(Base):
    __tablename__ = "delivery_plans"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(Enum(DeliveryPlanStatus), nullable=False, default=DeliveryPlanStatus.DRAFT)
    target_count = Column(Integer, nullable=False, default=0)

    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (Index("ix_delivery_plans_org_status", "organization_id", "status"),)

    def __repr__(self) -> str:
        return f"<DeliveryPlan(id={self.id}, org={self.organization_id}, status={self.status})>"
