"""Credit ledger API endpoints"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.database import get_db
from backend.app.core.exceptions import NotFoundException, ValidationException
from backend.app.core.security import (
    get_current_user,
    require_company,
    require_credit_granter,
)
from backend.app.models.credit import CreditReason
from backend.app.models.user import User
from backend.app.repositories.candidate_profile_repository import CandidateProfileRepository
from backend.app.repositories.user_repository import UserRepository
from backend.app.schemas.credits import (
    BalanceResponse,
    DeductRequest,
    DeductResponse,
    GrantRequest,
    HistoryResponse,
    TransactionResponse,
    UnlockedProfilesResponse,
)
from backend.app.schemas.envelope import ApiResponse
from backend.app.services.credit_ledger import CreditLedger
from backend.app.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def get_ledger(db: AsyncSession = Depends(get_db)) -> CreditLedger:
    """Dependency to get credit ledger"""
    return CreditLedger(db)


@router.get("", response_model=ApiResponse[BalanceResponse])
async def get_balance(
    current_user: User = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_ledger)
):
    """
    Get the caller's credit balance

    An empty account is created on first use.
    """
    account = await ledger.get_account(current_user.id)
    return ApiResponse(
        data=BalanceResponse(
            user_id=account.user_id,
            balance=account.balance,
            total_granted=account.total_granted,
        )
    )


@router.post("/deduct", response_model=ApiResponse[DeductResponse])
async def deduct_credits(
    request: DeductRequest,
    current_user: User = Depends(require_company),
    ledger: CreditLedger = Depends(get_ledger),
    db: AsyncSession = Depends(get_db)
):
    """
    Deduct credits from the caller's balance

    With reason `profile_unlock` the profile is added to the caller's
    unlocked set; deducting again for a profile already unlocked succeeds
    without charging.

    **Required role:** company or admin

    ## Error Responses

    - **400 Bad Request**: Insufficient credits, invalid amount, unlock amount other than
      the configured unlock cost, or missing profile_id
    - **404 Not Found**: Profile to unlock not found or not active
    """
    user_id = current_user.id

    if request.reason == CreditReason.PROFILE_UNLOCK:
        if request.profile_id is None:
            raise ValidationException("profile_id is required for a profile unlock")
        if request.amount != settings.PROFILE_UNLOCK_COST:
            raise ValidationException(
                f"A profile unlock costs {settings.PROFILE_UNLOCK_COST} credits",
                details={"amount": request.amount, "unlock_cost": settings.PROFILE_UNLOCK_COST},
            )
        profile = await CandidateProfileRepository(db).get_by_id(request.profile_id)
        if not profile or not profile.is_active:
            raise NotFoundException(f"Candidate profile not found: {request.profile_id}")

    result = await ledger.deduct(
        user_id,
        request.amount,
        profile_id=request.profile_id,
        reason=request.reason,
        actor_id=user_id,
        note=request.note,
    )
    return ApiResponse(
        data=DeductResponse(
            balance=result.balance,
            charged=result.charged,
            already_unlocked=result.already_unlocked,
            transaction_id=result.transaction.id if result.transaction else None,
        ),
        message="Profile already unlocked" if result.already_unlocked else "Credits deducted"
    )


@router.get("/history", response_model=ApiResponse[HistoryResponse])
async def get_history(
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    current_user: User = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_ledger)
):
    """
    Get the caller's credit ledger, oldest first

    `consistent` reports whether replaying the whole ledger from zero
    reproduces the stored balance.
    """
    replay = await ledger.replay(current_user.id)
    entries = await ledger.history(current_user.id, skip=skip, limit=limit)
    return ApiResponse(
        data=HistoryResponse(
            balance=replay.stored_balance,
            total_added=replay.total_added,
            total_used=replay.total_used,
            consistent=replay.consistent,
            transactions=[TransactionResponse.model_validate(entry) for entry in entries],
        )
    )


@router.get("/unlocked", response_model=ApiResponse[UnlockedProfilesResponse])
async def get_unlocked_profiles(
    current_user: User = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_ledger)
):
    """List the profiles the caller has unlocked"""
    profile_ids = await ledger.unlocked_profile_ids(current_user.id)
    return ApiResponse(
        data=UnlockedProfilesResponse(profile_ids=profile_ids, count=len(profile_ids))
    )


@router.post(
    "/grant",
    response_model=ApiResponse[TransactionResponse],
    status_code=status.HTTP_201_CREATED
)
async def grant_credits(
    request: GrantRequest,
    current_user: User = Depends(require_credit_granter),
    ledger: CreditLedger = Depends(get_ledger),
    db: AsyncSession = Depends(get_db)
):
    """
    Add credits to a user's balance

    **Required role:** admin with `credits:grant`

    ## Error Responses

    - **404 Not Found**: Target user not found
    """
    admin_id = current_user.id
    target = await UserRepository(db).get_by_id(request.user_id)
    if not target:
        raise NotFoundException(f"User not found: {request.user_id}")

    transaction = await ledger.grant(
        request.user_id,
        request.amount,
        reason=request.reason,
        actor_id=admin_id,
        note=request.note,
    )
    logger.info(
        f"Admin {admin_id} granted {request.amount} credits to {request.user_id}",
        extra={"admin_id": str(admin_id), "user_id": str(request.user_id)},
    )
    return ApiResponse(
        data=TransactionResponse.model_validate(transaction),
        message="Credits granted"
    )
