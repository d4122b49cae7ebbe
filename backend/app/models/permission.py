"""Administrative permission grants"""

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.sql import func
from backend.app.core.database import Base
from backend.app.models.base import utcnow
import uuid
import enum


class Permission(str, enum.Enum):
    """Permissions an admin account can be granted"""
    PROFILES_MODERATE = "profiles:moderate"
    CREDITS_GRANT = "credits:grant"


class AdminPermission(Base):
    """Explicit grant of one permission to one admin user"""

    __tablename__ = "admin_permissions"
    __table_args__ = (
        UniqueConstraint("user_id", "permission", name="uq_admin_permissions_user_permission"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    permission = Column(String(100), nullable=False)
    granted_by = Column(Uuid, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<AdminPermission(user_id={self.user_id}, permission={self.permission})>"
