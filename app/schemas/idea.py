from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.idea import ContentType, IdeaStatus, MediaType


class IdeaCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255, description="Working title of the idea.")
    description: str | None = Field(None, description="What the content should cover.")
    content_type: ContentType = ContentType.SOCIAL_MEDIA_POST
    media_type: MediaType | None = None
    publishing_datetime: datetime | None = Field(None, description="Target publish time; approved drafts are scheduled for it.")
    delivery_plan_id: int | None = None


class IdeaUpdate(BaseModel):
    title: str | None = Field(None, max_length=255)
    description: str | None = None
    content_type: ContentType | None = None
    media_type: MediaType | None = None
    publishing_datetime: datetime | None = None
    expected_version: int | None = Field(None, description="row_version the edit was based on.")


class IdeaReview(BaseModel):
    status: IdeaStatus = Field(..., description="approved or rejected")
    comment: str | None = None
    expected_status: IdeaStatus | None = None


class IdeaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    created_by_id: int | None
    delivery_plan_id: int | None = None
    title: str
    description: str | None = None
    content_type: ContentType
    media_type: MediaType | None = None
    publishing_datetime: datetime | None = None
    status: IdeaStatus
    row_version: int
    created_at: datetime
    updated_at: datetime
