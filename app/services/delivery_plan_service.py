"""
Delivery Plan Service

Organization-scoped content plans grouping ideas over a date range.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.roles import PLANNER_ROLES
from app.exceptions import (
    AccessDeniedError,
    DeliveryPlanNotFoundError,
    IdeaNotFoundError,
    InvalidTransitionError,
    ValidationError,
)
from app.models.content_draft import ContentDraft, DraftStatus
from app.models.delivery_plan import CLOSED_PLAN_STATUSES, DeliveryPlan, DeliveryPlanStatus
from app.models.idea import Idea, IdeaStatus
from app.services.access_filter import scoped_filter
from app.services.repository import ScopedRepository
from app.services.tenancy import OrganizationContext

logger = logging.getLogger(__name__)

PLAN_TRANSITIONS = {
    DeliveryPlanStatus.DRAFT: {DeliveryPlanStatus.ACTIVE, DeliveryPlanStatus.CANCELLED},
    DeliveryPlanStatus.ACTIVE: {DeliveryPlanStatus.COMPLETED, DeliveryPlanStatus.CANCELLED},
    DeliveryPlanStatus.COMPLETED: set(),
    DeliveryPlanStatus.CANCELLED: set(),
}


class DeliveryPlanService:
    def __init__(self, db: AsyncSession, context: OrganizationContext):
        self.db = db
        self.context = context
        self.repo = ScopedRepository(db, context)

    def _require_planner(self) -> None:
        if self.context.role not in PLANNER_ROLES:
            raise AccessDeniedError("Only managers and admins may manage delivery plans")

    async def create_plan(
        self,
        name: str,
        start_date: date,
        end_date: date,
        description: str | None = None,
        target_count: int = 0,
    ) -> DeliveryPlan:
        self._require_planner()
        if not name or not name.strip():
            raise ValidationError("Plan name cannot be empty", field="name")
        if end_date < start_date:
            raise ValidationError("end_date must not be before start_date", field="end_date")
        if target_count < 0:
            raise ValidationError("target_count cannot be negative", field="target_count")

        try:
            plan = self.repo.create(
                DeliveryPlan,
                name=name.strip(),
                description=description,
                start_date=start_date,
                end_date=end_date,
                target_count=target_count,
                status=DeliveryPlanStatus.DRAFT,
                created_by_id=self.context.principal_id,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        await self.db.refresh(plan)
        logger.info("Delivery plan %d created in org %d", plan.id, plan.organization_id)
        return plan

    async def get_plan(self, plan_id: int) -> DeliveryPlan:
        plan = await self.repo.get(DeliveryPlan, plan_id)
        if plan is None:
            raise DeliveryPlanNotFoundError(plan_id)
        return plan

    async def list_plans(self, status: DeliveryPlanStatus | None = None) -> list[DeliveryPlan]:
        criteria = [DeliveryPlan.status == DeliveryPlanStatus(status)] if status else []
        return await self.repo.find(DeliveryPlan, *criteria, order_by=(DeliveryPlan.start_date, DeliveryPlan.id))

    async def set_status(self, plan_id: int, status: DeliveryPlanStatus) -> DeliveryPlan:
        self._require_planner()
        plan = await self.get_plan(plan_id)
        status = DeliveryPlanStatus(status)
        if status not in PLAN_TRANSITIONS[plan.status]:
            raise InvalidTransitionError("DeliveryPlan", plan.status.value, status.value)
        try:
            plan = await self.repo.update(DeliveryPlan, plan_id, {"status": status}, expected_status=plan.status)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        logger.info("Delivery plan %d moved to %s", plan_id, status.value)
        return plan

    async def assign_idea(self, plan_id: int, idea_id: int) -> Idea:
        self._require_planner()
        plan = await self.get_plan(plan_id)
        if plan.status in CLOSED_PLAN_STATUSES:
            raise ValidationError("Cannot assign ideas to a closed delivery plan")
        return await self._set_idea_plan(idea_id, plan.id)

    async def unassign_idea(self, plan_id: int, idea_id: int) -> Idea:
        self._require_planner()
        await self.get_plan(plan_id)
        idea = await self.repo.get(Idea, idea_id, Idea.delivery_plan_id == plan_id)
        if idea is None:
            raise IdeaNotFoundError(idea_id)
        return await self._set_idea_plan(idea_id, None)

    async def get_progress(self, plan_id: int) -> dict:
        """Counts of ideas assigned, approved and published for a plan."""
        plan = await self.get_plan(plan_id)
        in_plan = Idea.delivery_plan_id == plan_id

        assigned = await self.repo.count(Idea, in_plan)
        approved = await self.repo.count(Idea, in_plan, Idea.status == IdeaStatus.APPROVED)
        result = await self.db.execute(
            select(func.count(distinct(ContentDraft.idea_id)))
            .join(Idea, Idea.id == ContentDraft.idea_id)
            .where(
                scoped_filter(self.context, ContentDraft, ContentDraft.status == DraftStatus.PUBLISHED).clause(),
                in_plan,
            )
        )
        published = int(result.scalar_one())

        return {
            "plan_id": plan.id,
            "status": plan.status.value,
            "target_count": plan.target_count,
            "assigned": assigned,
            "approved": approved,
            "published": published,
            "completion": round(published / plan.target_count, 3) if plan.target_count else None,
        }

    async def _set_idea_plan(self, idea_id: int, plan_id: int | None) -> Idea:
        if await self.repo.get(Idea, idea_id) is None:
            raise IdeaNotFoundError(idea_id)
        try:
            idea = await self.repo.update(Idea, idea_id, {"delivery_plan_id": plan_id})
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return idea
