"""
Channel connection model

Organization-scoped credentials for an external publish channel.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Index, Integer, String, Text

from app.database import Base
from app.models.delivery import PublishChannel


class ChannelConnection(Base):
    __tablename__ = "channel_connections"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    channel = Column(Enum(PublishChannel), nullable=False)

    access_token = Column(Text, nullable=False)
    # LinkedIn author URN, e.g. "urn:li:organization:123"
    account_urn = Column(String(255), nullable=False)
    expires_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    connected_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    __table_args__ = (Index("ix_channel_connections_org_channel", "organization_id", "channel"),)

    def __repr__(self) -> str:
        return f"<ChannelConnection(id={self.id}, org={self.organization_id}, channel={self.channel})>"
