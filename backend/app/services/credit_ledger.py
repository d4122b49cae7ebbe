"""Credit ledger: atomic balance mutation and at-most-once profile unlocks"""

from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import (
    InsufficientCreditsException,
    NotFoundException,
    ValidationException,
)
from backend.app.core.logging import get_logger
from backend.app.models.credit import CreditAccount, CreditReason, CreditTransaction
from backend.app.repositories.credit_repository import CreditRepository

logger = get_logger(__name__)

# Reasons that add credits; everything else removes them
CREDIT_REASONS = (CreditReason.PURCHASE, CreditReason.ADMIN_GRANT)


@dataclass
class DeductionResult:
    """Outcome of a deduction request"""
    balance: int
    charged: int
    already_unlocked: bool = False
    transaction: Optional[CreditTransaction] = None


@dataclass
class LedgerReplay:
    """Balance recomputed from the ledger against the stored balance"""
    stored_balance: int
    replayed_balance: int
    total_added: int
    total_used: int

    @property
    def consistent(self) -> bool:
        return self.stored_balance == self.replayed_balance


def _check_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationException(
            "Amount must be a positive whole number of credits",
            details={"amount": amount},
        )


class CreditLedger:
    """
    Service owning every credit balance mutation

    Each mutation commits the new balance together with exactly one ledger
    entry. The balance test and the decrement happen in a single conditional
    UPDATE scoped to the user's account row, and an unlock is claimed by
    inserting into a table unique on (user, profile) before any credit moves,
    so concurrent requests can neither overdraw nor double charge.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize credit ledger

        Args:
            session: Database session; the ledger commits on it
        """
        self.session = session
        self.credit_repo = CreditRepository(session)

    async def _ensure_account(self, user_id: UUID) -> CreditAccount:
        account = await self.credit_repo.get_account(user_id)
        if account:
            return account

        try:
            account = await self.credit_repo.create_account(user_id)
            await self.session.commit()
        except IntegrityError:
            # Created concurrently by another request
            await self.session.rollback()
            account = await self.credit_repo.get_account(user_id)
            if not account:
                raise NotFoundException(f"User not found: {user_id}")
        return account

    async def get_account(self, user_id: UUID) -> CreditAccount:
        """Get a user's account, creating an empty one on first use"""
        return await self._ensure_account(user_id)

    async def get_balance(self, user_id: UUID) -> int:
        """
        Get a user's current balance

        Args:
            user_id: Account owner

        Returns:
            Non-negative balance (0 for a user never seen before)
        """
        account = await self._ensure_account(user_id)
        return account.balance

    async def is_unlocked(self, user_id: UUID, profile_id: UUID) -> bool:
        """Check whether a user has already paid for a profile"""
        return await self.credit_repo.is_unlocked(user_id, profile_id)

    async def unlocked_profile_ids(self, user_id: UUID) -> List[UUID]:
        """List the profiles a user has unlocked"""
        return await self.credit_repo.list_unlocked_profile_ids(user_id)

    async def deduct(
        self,
        user_id: UUID,
        amount: int,
        profile_id: Optional[UUID] = None,
        reason: CreditReason = CreditReason.PROFILE_UNLOCK,
        actor_id: Optional[UUID] = None,
        note: Optional[str] = None
    ) -> DeductionResult:
        """
        Remove credits from a user's balance

        For ``profile_unlock`` the profile is added to the user's unlocked set
        in the same transaction; a profile already unlocked succeeds without
        any charge.

        Args:
            user_id: Account owner
            amount: Positive number of credits
            profile_id: Profile being paid for (required for unlocks)
            reason: Ledger reason
            actor_id: User performing the action, when not the owner
            note: Free-text ledger note

        Returns:
            Deduction result

        Raises:
            ValidationException: If the amount or reason is invalid
            InsufficientCreditsException: If the balance is below the amount
        """
        _check_amount(amount)
        if reason in CREDIT_REASONS:
            raise ValidationException(f"Reason {reason.value} cannot be used for a deduction")
        if reason == CreditReason.PROFILE_UNLOCK and profile_id is None:
            raise ValidationException("profile_id is required for a profile unlock")

        account = await self._ensure_account(user_id)
        unlock = None

        if reason == CreditReason.PROFILE_UNLOCK:
            if await self.credit_repo.is_unlocked(user_id, profile_id):
                logger.info(
                    f"Profile {profile_id} already unlocked by {user_id}, no charge",
                    extra={"user_id": str(user_id), "profile_id": str(profile_id)},
                )
                return DeductionResult(balance=account.balance, charged=0, already_unlocked=True)

            try:
                unlock = await self.credit_repo.add_unlock(user_id, profile_id)
            except IntegrityError:
                # A concurrent request claimed the unlock first
                await self.session.rollback()
                account = await self.credit_repo.get_account(user_id)
                return DeductionResult(balance=account.balance, charged=0, already_unlocked=True)

        new_balance = await self.credit_repo.try_debit(user_id, amount)
        if new_balance is None:
            await self.session.rollback()
            account = await self.credit_repo.get_account(user_id)
            logger.warning(
                f"Insufficient credits for {user_id}: balance {account.balance}, requested {amount}",
                extra={"user_id": str(user_id)},
            )
            raise InsufficientCreditsException(balance=account.balance, requested=amount)

        transaction = await self.credit_repo.add_transaction(
            user_id=user_id,
            delta=-amount,
            resulting_balance=new_balance,
            reason=reason,
            profile_id=profile_id,
            actor_id=actor_id,
            note=note,
        )
        if unlock is not None:
            unlock.transaction_id = transaction.id
        await self.session.commit()

        logger.info(
            f"Deducted {amount} credits from {user_id} ({reason.value}), balance {new_balance}",
            extra={"user_id": str(user_id), "profile_id": str(profile_id) if profile_id else None},
        )
        return DeductionResult(balance=new_balance, charged=amount, transaction=transaction)

    async def grant(
        self,
        user_id: UUID,
        amount: int,
        reason: CreditReason = CreditReason.ADMIN_GRANT,
        actor_id: Optional[UUID] = None,
        note: Optional[str] = None
    ) -> CreditTransaction:
        """
        Add credits to a user's balance

        Args:
            user_id: Account owner
            amount: Positive number of credits
            reason: ``admin_grant`` or ``purchase``
            actor_id: Admin performing the grant
            note: Free-text ledger note

        Returns:
            The ledger entry recording the grant
        """
        _check_amount(amount)
        if reason not in CREDIT_REASONS:
            raise ValidationException(f"Reason {reason.value} cannot be used for a grant")

        await self._ensure_account(user_id)
        new_balance = await self.credit_repo.credit(user_id, amount)
        if new_balance is None:
            await self.session.rollback()
            raise NotFoundException(f"Credit account not found: {user_id}")

        transaction = await self.credit_repo.add_transaction(
            user_id=user_id,
            delta=amount,
            resulting_balance=new_balance,
            reason=reason,
            actor_id=actor_id,
            note=note,
        )
        await self.session.commit()

        logger.info(
            f"Granted {amount} credits to {user_id} ({reason.value}), balance {new_balance}",
            extra={"user_id": str(user_id)},
        )
        return transaction

    async def history(
        self,
        user_id: UUID,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> List[CreditTransaction]:
        """Get a user's ledger entries, oldest first"""
        return await self.credit_repo.list_transactions(user_id, skip=skip, limit=limit)

    async def replay(self, user_id: UUID) -> LedgerReplay:
        """
        Recompute the balance by replaying the ledger from zero

        Returns:
            Replay summary; ``consistent`` is False if the stored balance drifted
        """
        account = await self._ensure_account(user_id)
        entries = await self.credit_repo.list_transactions(user_id)

        balance = 0
        total_added = 0
        total_used = 0
        for entry in entries:
            balance += entry.delta
            if entry.delta > 0:
                total_added += entry.delta
            else:
                total_used -= entry.delta

        replay = LedgerReplay(
            stored_balance=account.balance,
            replayed_balance=balance,
            total_added=total_added,
            total_used=total_used,
        )
        if not replay.consistent:
            logger.error(
                f"Ledger drift for {user_id}: stored {account.balance}, replayed {balance}",
                extra={"user_id": str(user_id)},
            )
        return replay
