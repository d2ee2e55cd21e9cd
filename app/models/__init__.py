from .channel_connection import ChannelConnection
from .content_draft import ContentDraft, DraftStatus
from .delivery import DeliveryRecord, DeliveryStatus, PublishChannel
from .delivery_plan import DeliveryPlan, DeliveryPlanStatus
from .feedback import Feedback, FeedbackCategory, FeedbackPriority
from .idea import ContentType, Idea, IdeaStatus, MediaType
from .membership import OrganizationMembership
from .organization import Organization, SubscriptionStatus, SubscriptionTier
from .user import User
from .workflow import WorkflowAction, WorkflowEntity, WorkflowHistory

__all__ = [
    "ChannelConnection",
    "ContentDraft",
    "DraftStatus",
    "DeliveryRecord",
    "DeliveryStatus",
    "PublishChannel",
    "DeliveryPlan",
    "DeliveryPlanStatus",
    "Feedback",
    "FeedbackCategory",
    "FeedbackPriority",
    "ContentType",
    "Idea",
    "IdeaStatus",
    "MediaType",
    "OrganizationMembership",
    "Organization",
    "SubscriptionStatus",
    "SubscriptionTier",
    "User",
    "WorkflowAction",
    "WorkflowEntity",
    "WorkflowHistory",
]
