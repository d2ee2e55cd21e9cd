"""
Delivery Model

Append-only log of publish attempts against external channels.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, String, Text

from app.database import Base


class PublishChannel(str, enum.Enum):
    """
    External channels content can be published to.

    A channel is only usable once a client for it is registered.
    """

    LINKEDIN = "linkedin"
    TWITTER = "twitter"
    FACEBOOK = "facebook"


class DeliveryStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"


class DeliveryRecord(Base):
    """
    One row per delivery attempt per channel.

    attempt is 0 when the channel failed before any delivery was made
    (for example missing credentials).
    """

    __tablename__ = "delivery_records"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    draft_id = Column(Integer, ForeignKey("content_drafts.id", ondelete="CASCADE"), nullable=False, index=True)

    channel = Column(Enum(PublishChannel), nullable=False)
    status = Column(Enum(DeliveryStatus), nullable=False)
    external_id = Column(String(255), nullable=True)
    external_url = Column(String(2048), nullable=True)

    # Error info
    error_message = Column(Text, nullable=True)
    status_code = Column(Integer, nullable=True)

    attempt = Column(Integer, default=1, nullable=False)
    duration_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        Index("ix_delivery_records_draft_channel", "draft_id", "channel", "created_at"),
        Index("ix_delivery_records_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<DeliveryRecord(id={self.id}, draft={self.draft_id}, channel={self.channel}, status={self.status})>"
