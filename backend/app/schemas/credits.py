"""Credit ledger schemas for API requests and responses"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict, field_validator

from backend.app.models.credit import CreditReason

# Reasons accepted by each endpoint
DEDUCTION_REASONS = (CreditReason.PROFILE_UNLOCK, CreditReason.ADMIN_DEDUCTION)
GRANT_REASONS = (CreditReason.ADMIN_GRANT, CreditReason.PURCHASE)


class BalanceResponse(BaseModel):
    """Current balance of a user"""
    user_id: UUID
    balance: int
    total_granted: int


class DeductRequest(BaseModel):
    """Request schema for a deduction"""
    amount: int = Field(..., gt=0, strict=True, description="Whole number of credits")
    profile_id: Optional[UUID] = Field(None, description="Profile being unlocked")
    reason: CreditReason = CreditReason.PROFILE_UNLOCK
    note: Optional[str] = Field(None, max_length=500)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, v):
        if v not in DEDUCTION_REASONS:
            raise ValueError(f'Reason must be one of {[r.value for r in DEDUCTION_REASONS]}')
        return v

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "amount": 1,
                "profile_id": "123e4567-e89b-12d3-a456-426614174000",
                "reason": "profile_unlock"
            }
        }
    )


class DeductResponse(BaseModel):
    """Result of a deduction"""
    balance: int
    charged: int
    already_unlocked: bool
    transaction_id: Optional[int] = None


class GrantRequest(BaseModel):
    """Request schema for an administrative top-up"""
    user_id: UUID
    amount: int = Field(..., gt=0, strict=True)
    reason: CreditReason = CreditReason.ADMIN_GRANT
    note: Optional[str] = Field(None, max_length=500)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, v):
        if v not in GRANT_REASONS:
            raise ValueError(f'Reason must be one of {[r.value for r in GRANT_REASONS]}')
        return v


class TransactionResponse(BaseModel):
    """Ledger entry"""
    id: int
    delta: int
    resulting_balance: int
    reason: CreditReason
    profile_id: Optional[UUID] = None
    actor_id: Optional[UUID] = None
    note: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class HistoryResponse(BaseModel):
    """A user's ledger with totals and a replay consistency check"""
    balance: int
    total_added: int
    total_used: int
    consistent: bool
    transactions: List[TransactionResponse]


class UnlockedProfilesResponse(BaseModel):
    """Profiles a user has paid to unlock"""
    profile_ids: List[UUID]
    count: int
