"""
Content draft model

One versioned creative execution of an Idea. organization_id is copied
from the idea so tenant scoping stays a single equality check.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.idea import ContentType


class DraftStatus(str, enum.Enum):
    DRAFT = "draft"
    AWAITING_FEEDBACK = "awaiting_feedback"
    AWAITING_REVISION = "awaiting_revision"
    APPROVED = "approved"
    REJECTED = "rejected"
    PUBLISHED = "published"


TERMINAL_DRAFT_STATUSES = frozenset({DraftStatus.REJECTED, DraftStatus.PUBLISHED})

# Once a draft reaches one of these, its idea is locked
LOCKING_DRAFT_STATUSES = frozenset({DraftStatus.APPROVED, DraftStatus.PUBLISHED})


class ContentDraft(Base):
    __tablename__ = "content_drafts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    idea_id = Column(Integer, ForeignKey("ideas.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    body = Column(Text, nullable=False)
    content_type = Column(Enum(ContentType), nullable=False, default=ContentType.SOCIAL_MEDIA_POST)
    status = Column(Enum(DraftStatus), nullable=False, default=DraftStatus.DRAFT)

    # Revision number within the idea
    version = Column(Integer, nullable=False, default=1)
    # Optimistic-concurrency counter, bumped on every write
    row_version = Column(Integer, nullable=False, default=1)

    published_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    idea = relationship("Idea", back_populates="drafts", lazy="select")

    __table_args__ = (
        Index("ix_drafts_org_status", "organization_id", "status"),
        Index("ix_drafts_idea_version", "idea_id", "version"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_DRAFT_STATUSES

    def __repr__(self) -> str:
        return f"<ContentDraft(id={self.id}, idea={self.idea_id}, status={self.status})>"
