"""Credit ledger repository for database operations"""

from typing import List, Optional
from uuid import UUID
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.models.credit import (
    CreditAccount,
    CreditReason,
    CreditTransaction,
    ProfileUnlock,
)
from backend.app.core.logging import get_logger

logger = get_logger(__name__)


class CreditRepository:
    """Repository for credit accounts, ledger entries and unlocks"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_account(self, user_id: UUID) -> Optional[CreditAccount]:
        """Get a user's credit account, re-reading the stored row"""
        result = await self.session.execute(
            select(CreditAccount)
            .where(CreditAccount.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create_account(self, user_id: UUID) -> CreditAccount:
        """Create an empty account (flushed, not committed)"""
        account = CreditAccount(user_id=user_id, balance=0, total_granted=0)
        self.session.add(account)
        await self.session.flush()

        logger.info(f"Created credit account for user {user_id}")
        return account

    async def try_debit(self, user_id: UUID, amount: int) -> Optional[int]:
        """
        Decrement the balance only if it covers the amount

        The check and the write are a single conditional UPDATE, so two
        concurrent debits can never both pass against the same balance.

        Args:
            user_id: Account owner
            amount: Positive number of credits to remove

        Returns:
            New balance, or None when the balance was too low
        """
        result = await self.session.execute(
            update(CreditAccount)
            .where(CreditAccount.user_id == user_id, CreditAccount.balance >= amount)
            .values(balance=CreditAccount.balance - amount)
            .returning(CreditAccount.balance)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()

    async def credit(self, user_id: UUID, amount: int) -> Optional[int]:
        """
        Increment the balance and the lifetime granted total

        Returns:
            New balance, or None when the account does not exist
        """
        result = await self.session.execute(
            update(CreditAccount)
            .where(CreditAccount.user_id == user_id)
            .values(
                balance=CreditAccount.balance + amount,
                total_granted=CreditAccount.total_granted + amount,
            )
            .returning(CreditAccount.balance)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()

    async def add_transaction(
        self,
        user_id: UUID,
        delta: int,
        resulting_balance: int,
        reason: CreditReason,
        profile_id: Optional[UUID] = None,
        actor_id: Optional[UUID] = None,
        note: Optional[str] = None
    ) -> CreditTransaction:
        """Append a ledger entry (flushed, not committed)"""
        entry = CreditTransaction(
            user_id=user_id,
            delta=delta,
            resulting_balance=resulting_balance,
            reason=reason,
            profile_id=profile_id,
            actor_id=actor_id,
            note=note,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def add_unlock(self, user_id: UUID, profile_id: UUID) -> ProfileUnlock:
        """
        Record an unlock (flushed, not committed)

        Raises:
            IntegrityError: If the user already unlocked this profile
        """
        unlock = ProfileUnlock(user_id=user_id, profile_id=profile_id)
        self.session.add(unlock)
        await self.session.flush()
        return unlock

    async def is_unlocked(self, user_id: UUID, profile_id: UUID) -> bool:
        """Check whether a user has unlocked a profile"""
        result = await self.session.execute(
            select(ProfileUnlock.id).where(
                ProfileUnlock.user_id == user_id,
                ProfileUnlock.profile_id == profile_id,
            )
        )
        return result.first() is not None

    async def list_unlocked_profile_ids(self, user_id: UUID) -> List[UUID]:
        """List the profiles a user has unlocked, in unlock order"""
        result = await self.session.execute(
            select(ProfileUnlock.profile_id)
            .where(ProfileUnlock.user_id == user_id)
            .order_by(ProfileUnlock.id)
        )
        return list(result.scalars().all())

    async def list_transactions(
        self,
        user_id: UUID,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> List[CreditTransaction]:
        """List a user's ledger entries, oldest first"""
        stmt = (
            select(CreditTransaction)
            .where(CreditTransaction.user_id == user_id)
            .order_by(CreditTransaction.id)
            .offset(skip)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
