"""
Workflow Models

Audit trail for idea and content-draft state transitions. A history row is
written in the same unit of work as the status change it describes.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, String, Text

from app.database import Base


class WorkflowEntity(str, enum.Enum):
    """Entities governed by a state machine."""

    IDEA = "idea"
    CONTENT_DRAFT = "content_draft"


class WorkflowAction(str, enum.Enum):
    """Named transitions of the idea and draft state machines."""

    APPROVE_IDEA = "approve_idea"
    REJECT_IDEA = "reject_idea"
    CREATE = "create"
    SUBMIT = "submit"
    APPROVE = "approve"
    REQUEST_REVISION = "request_revision"
    REJECT = "reject"
    RESUBMIT = "resubmit"
    PUBLISH_SUCCEEDED = "publish_succeeded"
    DELETE = "delete"


class WorkflowHistory(Base):
    """
    Workflow history tracking.

    Logs all state transitions for audit purposes. entity_id is not a
    foreign key so history survives draft deletion.
    """

    __tablename__ = "workflow_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )

    entity_type = Column(Enum(WorkflowEntity), nullable=False)
    entity_id = Column(Integer, nullable=False)

    # Transition details; from_status is None for creation
    action = Column(Enum(WorkflowAction), nullable=False)
    from_status = Column(String(50), nullable=True)
    to_status = Column(String(50), nullable=True)

    # Who made the transition
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    comment = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (Index("ix_workflow_history_entity_created", "entity_type", "entity_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<WorkflowHistory(id={self.id}, {self.entity_type}={self.entity_id}, action={self.action})>"
