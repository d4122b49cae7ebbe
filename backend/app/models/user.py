"""User model"""

from sqlalchemy import Boolean, Column, String, Uuid
from backend.app.core.database import Base
from backend.app.models.base import TimestampMixin, enum_type
import uuid
import enum


class UserRole(str, enum.Enum):
    """User role enumeration"""
    CANDIDATE = "candidate"
    COMPANY = "company"
    ADMIN = "admin"


class User(Base, TimestampMixin):
    """Local mirror of an identity-provider account"""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(255), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(enum_type(UserRole, "userrole"), nullable=False, default=UserRole.CANDIDATE, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username}, role={self.role})>"
