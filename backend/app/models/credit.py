"""Credit ledger models"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.sql import func
from backend.app.core.database import Base
from backend.app.models.base import TimestampMixin, enum_type, utcnow
import uuid
import enum


class CreditReason(str, enum.Enum):
    """Why a balance changed"""
    PROFILE_UNLOCK = "profile_unlock"
    PURCHASE = "purchase"
    ADMIN_GRANT = "admin_grant"
    ADMIN_DEDUCTION = "admin_deduction"


class CreditAccount(Base, TimestampMixin):
    """One row per user holding the current balance"""

    __tablename__ = "credit_accounts"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_credit_accounts_balance_non_negative"),
    )

    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    balance = Column(Integer, nullable=False, default=0)
    total_granted = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<CreditAccount(user_id={self.user_id}, balance={self.balance})>"


class CreditTransaction(Base):
    """Append-only ledger entry; exactly one per balance mutation"""

    __tablename__ = "credit_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Uuid,
        ForeignKey("credit_accounts.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    delta = Column(Integer, nullable=False)
    resulting_balance = Column(Integer, nullable=False)
    reason = Column(enum_type(CreditReason, "creditreason"), nullable=False)
    profile_id = Column(Uuid, nullable=True)
    actor_id = Column(Uuid, nullable=True)
    note = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    def __repr__(self):
        return (
            f"<CreditTransaction(user_id={self.user_id}, delta={self.delta}, "
            f"resulting_balance={self.resulting_balance})>"
        )


class ProfileUnlock(Base):
    """A profile a user has paid to unlock; unique per (user, profile)"""

    __tablename__ = "profile_unlocks"
    __table_args__ = (
        UniqueConstraint("user_id", "profile_id", name="uq_profile_unlocks_user_profile"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Uuid,
        ForeignKey("credit_accounts.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    profile_id = Column(Uuid, nullable=False, index=True)
    transaction_id = Column(Integer, ForeignKey("credit_transactions.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<ProfileUnlock(user_id={self.user_id}, profile_id={self.profile_id})>"
