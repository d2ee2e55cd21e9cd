from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.content_draft import DraftStatus
from app.models.delivery import DeliveryStatus, PublishChannel
from app.models.feedback import FeedbackCategory, FeedbackPriority
from app.models.idea import ContentType
from app.models.workflow import WorkflowAction, WorkflowEntity


class DraftCreate(BaseModel):
    body: str = Field(..., min_length=1, description="The creative execution of the idea.")
    content_type: ContentType | None = None


class DraftResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    idea_id: int
    created_by_id: int | None
    body: str
    content_type: ContentType
    status: DraftStatus
    version: int
    row_version: int
    published_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class TransitionRequest(BaseModel):
    action: WorkflowAction
    comment: str | None = Field(None, description="Review comment; required revision notes for request_revision.")
    priority: FeedbackPriority = FeedbackPriority.MEDIUM
    expected_status: DraftStatus | None = Field(None, description="Status the caller last saw.")


class TransitionResponse(BaseModel):
    action: WorkflowAction
    from_status: DraftStatus
    to_status: DraftStatus | None
    draft: DraftResponse | None = None


class AvailableTransition(BaseModel):
    action: WorkflowAction
    from_status: DraftStatus
    to_status: DraftStatus | None
    requires_notes: bool = False


class FeedbackCreate(BaseModel):
    body: str = Field(..., min_length=1)
    rating: int | None = Field(None, ge=1, le=5)
    category: FeedbackCategory = FeedbackCategory.GENERAL
    priority: FeedbackPriority = FeedbackPriority.MEDIUM
    actionable: bool = False


class FeedbackResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    draft_id: int
    author_id: int | None
    body: str
    rating: int | None = None
    category: FeedbackCategory
    priority: FeedbackPriority
    actionable: bool
    created_at: datetime


class WorkflowHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    entity_type: WorkflowEntity
    entity_id: int
    action: WorkflowAction
    from_status: str | None = None
    to_status: str | None = None
    actor_id: int | None = None
    comment: str | None = None
    created_at: datetime


class PublishRequest(BaseModel):
    channels: list[PublishChannel] = Field(default_factory=list, description="Defaults to the configured channels.")


class DeliveryResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    channel: str
    status: DeliveryStatus
    attempts: int
    external_id: str | None = None
    external_url: str | None = None
    error: str | None = None
    status_code: int | None = None


class PublishResponse(BaseModel):
    draft_id: int
    draft_status: DraftStatus
    results: list[DeliveryResultResponse]


class DeliveryRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    draft_id: int
    channel: PublishChannel
    status: DeliveryStatus
    external_id: str | None = None
    external_url: str | None = None
    error_message: str | None = None
    status_code: int | None = None
    attempt: int
    duration_ms: int | None = None
    created_at: datetime
