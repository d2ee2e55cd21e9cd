from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from app.database import Base


# User model
class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=True)
    email = Column(String(320), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    # Cross-tenant support tooling only; never grants a membership role
    is_platform_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    memberships = relationship("OrganizationMembership", back_populates="user", lazy="select")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
