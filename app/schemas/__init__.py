from .delivery_plan import DeliveryPlanCreate, DeliveryPlanProgress, DeliveryPlanResponse, DeliveryPlanStatusUpdate
from .draft import (
    AvailableTransition,
    DeliveryRecordResponse,
    DeliveryResultResponse,
    DraftCreate,
    DraftResponse,
    FeedbackCreate,
    FeedbackResponse,
    PublishRequest,
    PublishResponse,
    TransitionRequest,
    TransitionResponse,
    WorkflowHistoryResponse,
)
from .idea import IdeaCreate, IdeaResponse, IdeaReview, IdeaUpdate
from .organization import (
    MembershipCreate,
    MembershipResponse,
    MembershipRoleUpdate,
    MyOrganizationResponse,
    OrganizationContextResponse,
    OrganizationCreate,
    OrganizationResponse,
    OrganizationUpdate,
)

# Define the public API of this module
__all__ = [
    "AvailableTransition",
    "DeliveryPlanCreate",
    "DeliveryPlanProgress",
    "DeliveryPlanResponse",
    "DeliveryPlanStatusUpdate",
    "DeliveryRecordResponse",
    "DeliveryResultResponse",
    "DraftCreate",
    "DraftResponse",
    "FeedbackCreate",
    "FeedbackResponse",
    "IdeaCreate",
    "IdeaResponse",
    "IdeaReview",
    "IdeaUpdate",
    "MembershipCreate",
    "MembershipResponse",
    "MembershipRoleUpdate",
    "MyOrganizationResponse",
    "OrganizationContextResponse",
    "OrganizationCreate",
    "OrganizationResponse",
    "OrganizationUpdate",
    "PublishRequest",
    "PublishResponse",
    "TransitionRequest",
    "TransitionResponse",
    "WorkflowHistoryResponse",
]
