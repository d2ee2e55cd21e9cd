"""
Idea model

A proposed piece of content awaiting client review and creative execution.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from app.database import Base


class IdeaStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ContentType(str, enum.Enum):
    NEWSLETTER = "newsletter"
    BLOG_POST = "blog_post"
    SOCIAL_MEDIA_POST = "social_media_post"
    WEBSITE_COPY = "website_copy"
    EMAIL_CAMPAIGN = "email_campaign"


class MediaType(str, enum.Enum):
    PHOTO = "photo"
    GRAPH_OR_INFOGRAPHIC = "graph_or_infographic"
    VIDEO = "video"
    SOCIAL_CARD = "social_card"
    POLL = "poll"
    CAROUSEL = "carousel"


class Idea(Base):
    __tablename__ = "ideas"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    delivery_plan_id = Column(
        Integer, ForeignKey("delivery_plans.id", ondelete="SET NULL"), nullable=True, index=True
    )

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    content_type = Column(Enum(ContentType), nullable=False, default=ContentType.SOCIAL_MEDIA_POST)
    media_type = Column(Enum(MediaType), nullable=True)
    publishing_datetime = Column(DateTime, nullable=True)

    status = Column(Enum(IdeaStatus), nullable=False, default=IdeaStatus.PENDING)
    # Optimistic-concurrency counter, bumped on every write
    row_version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    drafts = relationship("ContentDraft", back_populates="idea", lazy="select", order_by="ContentDraft.version")

    __table_args__ = (Index("ix_ideas_org_status", "organization_id", "status"),)

    def __repr__(self) -> str:
        return f"<Idea(id={self.id}, org={self.organization_id}, status={self.status})>"
