"""
Tests for delivery plans
"""

from datetime import date

import pytest

from app.exceptions import (
    AccessDeniedError,
    DeliveryPlanNotFoundError,
    IdeaNotFoundError,
    InvalidTransitionError,
    ValidationError,
)
from app.models.content_draft import DraftStatus
from app.models.delivery_plan import DeliveryPlanStatus
from app.services.delivery_plan_service import PLAN_TRANSITIONS, DeliveryPlanService
from app.services.idea_service import IdeaService

START = date(2026, 10, 1)
END = date(2026, 12, 31)


@pytest.fixture
def plans(db, contexts):
    return DeliveryPlanService(db, contexts.manager)


class TestCreatePlan:
    async def test_create(self, plans, tenants):
        plan = await plans.create_plan(" Q4 social ", START, END, description="Holiday push", target_count=12)
        assert plan.name == "Q4 social"
        assert plan.status == DeliveryPlanStatus.DRAFT
        assert plan.organization_id == tenants.acme.id
        assert plan.created_by_id == tenants.manager.id

    @pytest.mark.parametrize("role", ["member", "client", "viewer"])
    async def test_only_planners_create(self, db, contexts, role):
        with pytest.raises(AccessDeniedError):
            await DeliveryPlanService(db, getattr(contexts, role)).create_plan("Q4", START, END)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"name": "  ", "start_date": START, "end_date": END},
            {"name": "Backwards", "start_date": END, "end_date": START},
            {"name": "Negative", "start_date": START, "end_date": END, "target_count": -1},
        ],
    )
    async def test_invalid_plans(self, plans, kwargs):
        with pytest.raises(ValidationError):
            await plans.create_plan(**kwargs)

    async def test_plans_are_scoped(self, db, contexts, plans):
        plan = await plans.create_plan("Q4", START, END)
        with pytest.raises(DeliveryPlanNotFoundError):
            await DeliveryPlanService(db, contexts.outsider).get_plan(plan.id)
        assert await DeliveryPlanService(db, contexts.outsider).list_plans() == []


class TestPlanStatus:
    async def test_lifecycle(self, plans):
        plan = await plans.create_plan("Q4", START, END)
        plan = await plans.set_status(plan.id, DeliveryPlanStatus.ACTIVE)
        assert plan.status == DeliveryPlanStatus.ACTIVE
        plan = await plans.set_status(plan.id, "completed")
        assert plan.status == DeliveryPlanStatus.COMPLETED

        assert [p.name for p in await plans.list_plans(DeliveryPlanStatus.COMPLETED)] == ["Q4"]
        assert await plans.list_plans(DeliveryPlanStatus.ACTIVE) == []

    @pytest.mark.parametrize(
        "current,target",
        [
            (current, target)
            for current in DeliveryPlanStatus
            for target in DeliveryPlanStatus
            if target not in PLAN_TRANSITIONS[current]
        ],
    )
    async def test_invalid_transitions(self, db, plans, current, target):
        plan = await plans.create_plan("Q4", START, END)
        path = {
            DeliveryPlanStatus.DRAFT: [],
            DeliveryPlanStatus.ACTIVE: [DeliveryPlanStatus.ACTIVE],
            DeliveryPlanStatus.COMPLETED: [DeliveryPlanStatus.ACTIVE, DeliveryPlanStatus.COMPLETED],
            DeliveryPlanStatus.CANCELLED: [DeliveryPlanStatus.CANCELLED],
        }[current]
        for step in path:
            await plans.set_status(plan.id, step)

        with pytest.raises(InvalidTransitionError):
            await plans.set_status(plan.id, target)


class TestAssignment:
    async def test_assign_and_unassign(self, plans, driver):
        plan = await plans.create_plan("Q4", START, END)
        idea = await driver.pending_idea()

        assigned = await plans.assign_idea(plan.id, idea.id)
        assert assigned.delivery_plan_id == plan.id

        unassigned = await plans.unassign_idea(plan.id, idea.id)
        assert unassigned.delivery_plan_id is None

    async def test_unassign_idea_not_in_plan(self, plans, driver):
        plan = await plans.create_plan("Q4", START, END)
        idea = await driver.pending_idea()
        with pytest.raises(IdeaNotFoundError):
            await plans.unassign_idea(plan.id, idea.id)

    async def test_closed_plan_refuses_ideas(self, plans, driver):
        plan = await plans.create_plan("Q4", START, END)
        await plans.set_status(plan.id, DeliveryPlanStatus.CANCELLED)
        idea = await driver.pending_idea()
        with pytest.raises(ValidationError):
            await plans.assign_idea(plan.id, idea.id)

    async def test_cannot_assign_foreign_idea(self, db, contexts, plans):
        foreign = await IdeaService(db, contexts.outsider).create_idea(title="Globex launch")
        plan = await plans.create_plan("Q4", START, END)
        with pytest.raises(IdeaNotFoundError):
            await plans.assign_idea(plan.id, foreign.id)


class TestProgress:
    async def test_progress_counts(self, plans, driver):
        plan = await plans.create_plan("Q4", START, END, target_count=4)
        pending = await driver.pending_idea("Pending")
        approved = await driver.approved_idea("Approved")
        published = await driver.draft(DraftStatus.PUBLISHED)
        for idea_id in (pending.id, approved.id, published.idea_id):
            await plans.assign_idea(plan.id, idea_id)

        progress = await plans.get_progress(plan.id)

        assert progress == {
            "plan_id": plan.id,
            "status": "draft",
            "target_count": 4,
            "assigned": 3,
            "approved": 2,
            "published": 1,
            "completion": 0.25,
        }

    async def test_progress_without_target(self, plans):
        plan = await plans.create_plan("Open ended", START, END)
        progress = await plans.get_progress(plan.id)
        assert progress["completion"] is None
        assert progress["assigned"] == 0
