from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.delivery_plan import DeliveryPlanStatus


class DeliveryPlanCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    start_date: date
    end_date: date
    target_count: int = Field(0, ge=0, description="Number of pieces the plan should deliver.")


class DeliveryPlanStatusUpdate(BaseModel):
    status: DeliveryPlanStatus


class DeliveryPlanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    name: str
    description: str | None = None
    start_date: date
    end_date: date
    status: DeliveryPlanStatus
    target_count: int
    created_by_id: int | None = None
    created_at: datetime


class DeliveryPlanProgress(BaseModel):
    plan_id: int
    status: DeliveryPlanStatus
    target_count: int
    assigned: int
    approved: int
    published: int
    completion: float | None = None
