"""
Feedback model

Review comments attached to a content draft. Rows are append-only.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Index, Integer, Text

from app.database import Base


class FeedbackCategory(str, enum.Enum):
    GENERAL = "general"
    CONTENT = "content"
    TONE = "tone"
    STRUCTURE = "structure"
    VISUAL = "visual"
    COMPLIANCE = "compliance"
    REVISION_REQUEST = "revision_request"


class FeedbackPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Feedback(Base):
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    draft_id = Column(Integer, ForeignKey("content_drafts.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    body = Column(Text, nullable=False)
    rating = Column(Integer, nullable=True)  # 1-5
    category = Column(Enum(FeedbackCategory), nullable=False, default=FeedbackCategory.GENERAL)
    priority = Column(Enum(FeedbackPriority), nullable=False, default=FeedbackPriority.MEDIUM)
    actionable = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (Index("ix_feedback_draft_created", "draft_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<Feedback(id={self.id}, draft={self.draft_id}, actionable={self.actionable})>"
