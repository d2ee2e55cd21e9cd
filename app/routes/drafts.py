"""
Content Draft Routes

Draft lifecycle (transitions and history), review feedback, and
publishing to external channels.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_organization_context
from app.database import get_db
from app.models.content_draft import DraftStatus
from app.models.workflow import WorkflowEntity
from app.permissions_config.permission_dependencies import permission_required
from app.permissions_config.permissions import PUBLISH_DRAFT
from app.schemas.draft import (
    AvailableTransition,
    DeliveryRecordResponse,
    DeliveryResultResponse,
    DraftResponse,
    FeedbackCreate,
    FeedbackResponse,
    PublishRequest,
    PublishResponse,
    TransitionRequest,
    TransitionResponse,
    WorkflowHistoryResponse,
)
from app.scheduler import get_publish_canceller, get_publish_scheduler
from app.services.channels import ChannelRegistry, get_channel_registry
from app.services.feedback_service import FeedbackService
from app.services.notification_service import Notifier, get_notifier
from app.services.publish_service import PublishCoordinator
from app.services.tenancy import OrganizationContext
from app.services.workflow_service import WorkflowService

router = APIRouter(prefix="/drafts", tags=["Drafts"])
logger = logging.getLogger(__name__)


@router.get("", response_model=list[DraftResponse])
async def list_drafts(
    status_filter: DraftStatus | None = Query(None, alias="status"),
    skip: int = 0,
    limit: int = 50,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    """List drafts visible to the caller's role."""
    return await WorkflowService(db, context).list_drafts(status=status_filter, skip=skip, limit=min(limit, 200))


@router.get("/{draft_id}", response_model=DraftResponse)
async def get_draft(
    draft_id: int,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await WorkflowService(db, context).get_draft(draft_id)


# ============== Workflow ==============


@router.get("/{draft_id}/transitions", response_model=list[AvailableTransition])
async def get_available_transitions(
    draft_id: int,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Get available transitions for a specific draft.

    Returns transitions based on current status and the caller's role.
    """
    return await WorkflowService(db, context).get_available_transitions(draft_id)


@router.post("/{draft_id}/transitions", response_model=TransitionResponse)
async def execute_transition(
    draft_id: int,
    data: TransitionRequest,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    publish_scheduler=Depends(get_publish_scheduler),
    publish_canceller=Depends(get_publish_canceller),
):
    """
    Execute a workflow transition on a draft.

    Send ``expected_status`` to fail with CONCURRENT_MODIFICATION instead
    of acting on a draft someone else has moved since you loaded it.
    """
    service = WorkflowService(
        db, context, notifier=notifier, publish_scheduler=publish_scheduler, publish_canceller=publish_canceller
    )
    result = await service.execute_transition(
        draft_id,
        data.action,
        comment=data.comment,
        priority=data.priority,
        expected_status=data.expected_status,
    )
    return TransitionResponse(
        action=result.action,
        from_status=result.from_status,
        to_status=result.to_status,
        draft=DraftResponse.model_validate(result.draft) if result.draft is not None else None,
    )


@router.get("/{draft_id}/history", response_model=list[WorkflowHistoryResponse])
async def get_draft_history(
    draft_id: int,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await WorkflowService(db, context).get_history(WorkflowEntity.CONTENT_DRAFT, draft_id)


# ============== Feedback ==============


@router.post("/{draft_id}/feedback", response_model=FeedbackResponse, status_code=201)
async def add_feedback(
    draft_id: int,
    data: FeedbackCreate,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await FeedbackService(db, context).add_feedback(draft_id, **data.model_dump())


@router.get("/{draft_id}/feedback", response_model=list[FeedbackResponse])
async def list_feedback(
    draft_id: int,
    actionable_only: bool = False,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
):
    return await FeedbackService(db, context).list_feedback(draft_id, actionable_only=actionable_only)


# ============== Publishing ==============


@router.post("/{draft_id}/publish", response_model=PublishResponse)
async def publish_draft(
    draft_id: int,
    data: PublishRequest,
    context: OrganizationContext = Depends(permission_required(PUBLISH_DRAFT)),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    registry: ChannelRegistry = Depends(get_channel_registry),
    publish_canceller=Depends(get_publish_canceller),
):
    """
    Publish an approved draft.

    Channel failures do not fail the request: each channel reports its own
    outcome so only the failed ones need retrying.
    """
    coordinator = PublishCoordinator(
        db, context, registry=registry, notifier=notifier, publish_canceller=publish_canceller
    )
    results = await coordinator.publish(draft_id, [c.value for c in data.channels])
    draft = await WorkflowService(db, context).get_draft(draft_id)
    return PublishResponse(
        draft_id=draft_id,
        draft_status=draft.status,
        results=[DeliveryResultResponse.model_validate(r) for r in results],
    )


@router.get("/{draft_id}/deliveries", response_model=list[DeliveryRecordResponse])
async def list_deliveries(
    draft_id: int,
    context: OrganizationContext = Depends(get_organization_context),
    db: AsyncSession = Depends(get_db),
    registry: ChannelRegistry = Depends(get_channel_registry),
):
    return await PublishCoordinator(db, context, registry=registry).list_deliveries(draft_id)
