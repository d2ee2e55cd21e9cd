"""
Idea Routes

Ideas and the drafts created from them, always inside the organization
resolved for the request.
"""

import logging

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_organization_context
from app.database import get_db
from app.models.idea import IdeaStatus
from app.models.workflow import WorkflowEntity
from app.schemas.draft import DraftCreate, DraftResponse, WorkflowHistoryResponse
from app.schemas.idea import IdeaCreate, IdeaResponse, IdeaReview, IdeaUpdate
from app.services.idea_service import IdeaService
from app.services.notification_service import Notifier, get_notifier
from app.services.tenancy import OrganizationContext
from app.services.workflow_service import WorkflowService

router = APIRouter(prefix="/ideas", tags=["Ideas"])
logger = logging.getLogger(__name__)


@router.post("", response_model=IdeaResponse, status_code=status.HTTP_201_CREATED)
async def create_idea(
    data: IdeaCreate,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await IdeaService(db, context).create_idea(**data.model_dump())


@router.get("", response_model=list[IdeaResponse])
async def list_ideas(
    status_filter: IdeaStatus | None = Query(None, alias="status"),
    delivery_plan_id: int | None = None,
    skip: int = 0,
    limit: int = 50,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await IdeaService(db, context).list_ideas(
        status=status_filter, delivery_plan_id=delivery_plan_id, skip=skip, limit=min(limit, 200)
    )


@router.get("/{idea_id}", response_model=IdeaResponse)
async def get_idea(
    idea_id: int,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await IdeaService(db, context).get_idea(idea_id)


@router.patch("/{idea_id}", response_model=IdeaResponse)
async def update_idea(
    idea_id: int,
    data: IdeaUpdate,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    updates = data.model_dump(exclude_unset=True)
    expected_version = updates.pop("expected_version", None)
    return await IdeaService(db, context).update_idea(idea_id, updates, expected_version=expected_version)


@router.delete("/{idea_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_idea(
    idea_id: int,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    await IdeaService(db, context).delete_idea(idea_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{idea_id}/review", response_model=IdeaResponse)
async def review_idea(
    idea_id: int,
    data: IdeaReview,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Approve or reject a pending idea."""
    service = WorkflowService(db, context, notifier=notifier)
    return await service.review_idea(
        idea_id, data.status, comment=data.comment, expected_status=data.expected_status
    )


@router.get("/{idea_id}/history", response_model=list[WorkflowHistoryResponse])
async def get_idea_history(
    idea_id: int,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    await IdeaService(db, context).get_idea(idea_id)
    return await WorkflowService(db, context).get_history(WorkflowEntity.IDEA, idea_id)


# ============== Drafts of an Idea ==============


@router.post("/{idea_id}/drafts", response_model=DraftResponse, status_code=status.HTTP_201_CREATED)
async def create_draft(
    idea_id: int,
    data: DraftCreate,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await WorkflowService(db, context).create_draft(idea_id, data.body, content_type=data.content_type)


@router.get("/{idea_id}/drafts", response_model=list[DraftResponse])
async def list_idea_drafts(
    idea_id: int,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    await IdeaService(db, context).get_idea(idea_id)
    return await WorkflowService(db, context).list_drafts(idea_id=idea_id, limit=200)


@router.get("/{idea_id}/drafts/active", response_model=DraftResponse | None)
async def get_active_draft(
    idea_id: int,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    """The most recent draft still moving through review, if any."""
    await IdeaService(db, context).get_idea(idea_id)
    return await WorkflowService(db, context).get_active_draft(idea_id)
