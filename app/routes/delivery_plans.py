"""
Delivery Plan Routes
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_organization_context
from app.database import get_db
from app.models.delivery_plan import DeliveryPlanStatus
from app.schemas.delivery_plan import (
    DeliveryPlanCreate,
    DeliveryPlanProgress,
    DeliveryPlanResponse,
    DeliveryPlanStatusUpdate,
)
from app.schemas.idea import IdeaResponse
from app.services.delivery_plan_service import DeliveryPlanService
from app.services.tenancy import OrganizationContext

router = APIRouter(prefix="/delivery-plans", tags=["Delivery Plans"])


@router.post("", response_model=DeliveryPlanResponse, status_code=status.HTTP_201_CREATED)
async def create_plan(
    data: DeliveryPlanCreate,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await DeliveryPlanService(db, context).create_plan(**data.model_dump())


@router.get("", response_model=list[DeliveryPlanResponse])
async def list_plans(
    status_filter: DeliveryPlanStatus | None = Query(None, alias="status"),
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await DeliveryPlanService(db, context).list_plans(status=status_filter)


@router.get("/{plan_id}", response_model=DeliveryPlanResponse)
async def get_plan(
    plan_id: int,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await DeliveryPlanService(db, context).get_plan(plan_id)


@router.patch("/{plan_id}/status", response_model=DeliveryPlanResponse)
async def set_plan_status(
    plan_id: int,
    data: DeliveryPlanStatusUpdate,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await DeliveryPlanService(db, context).set_status(plan_id, data.status)


@router.put("/{plan_id}/ideas/{idea_id}", response_model=IdeaResponse)
async def assign_idea(
    plan_id: int,
    idea_id: int,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await DeliveryPlanService(db, context).assign_idea(plan_id, idea_id)


@router.delete("/{plan_id}/ideas/{idea_id}", response_model=IdeaResponse)
async def unassign_idea(
    plan_id: int,
    idea_id: int,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await DeliveryPlanService(db, context).unassign_idea(plan_id, idea_id)


@router.get("/{plan_id}/progress", response_model=DeliveryPlanProgress)
async def get_plan_progress(
    plan_id: int,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await DeliveryPlanService(db, context).get_progress(plan_id)
