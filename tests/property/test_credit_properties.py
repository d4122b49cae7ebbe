"""Property-based tests for the credit ledger

Property 1: Deduction accounting
Property 2: Ledger replay reproduces the stored balance
Property 3: Unlock idempotence
"""

import pytest
from hypothesis import given, strategies as st
from hypothesis import settings as hypothesis_settings
from uuid import uuid4

from backend.app.core.exceptions import InsufficientCreditsException
from backend.app.models.credit import CreditReason
from backend.app.models.user import UserRole
from backend.app.services.credit_ledger import CreditLedger
from tests.factories import create_user, fresh_database

pytestmark = pytest.mark.property


class TestDeductionAccounting:
    """Property tests for single deductions"""

    @pytest.mark.asyncio
    @hypothesis_settings(max_examples=25, deadline=None)
    @given(
        starting_balance=st.integers(min_value=0, max_value=50),
        amount=st.integers(min_value=1, max_value=60),
    )
    async def test_property_1_deduction_accounting(self, starting_balance, amount):
        """
        Property 1: Deduction accounting

        For any balance B and amount A, a deduction succeeds exactly when
        A <= B, leaves B - A and appends one ledger entry carrying the new
        balance. Otherwise it fails with insufficient credits and changes
        neither the balance nor the history.
        """
        async with fresh_database() as db:
            async with db.session_factory() as session:
                company = await create_user(session, role=UserRole.COMPANY)
                company_id = company.id
                ledger = CreditLedger(session)
                if starting_balance:
                    await ledger.grant(company_id, starting_balance)
                entries_before = len(await ledger.history(company_id))

                if amount <= starting_balance:
                    result = await ledger.deduct(company_id, amount, profile_id=uuid4())
                    history = await ledger.history(company_id)

                    assert result.balance == starting_balance - amount
                    assert len(history) == entries_before + 1
                    assert history[-1].delta == -amount
                    assert history[-1].resulting_balance == result.balance
                else:
                    with pytest.raises(InsufficientCreditsException):
                        await ledger.deduct(company_id, amount, profile_id=uuid4())

                    assert len(await ledger.history(company_id)) == entries_before
                    assert await ledger.unlocked_profile_ids(company_id) == []

                expected = starting_balance - amount if amount <= starting_balance else starting_balance
                assert await ledger.get_balance(company_id) == expected
                assert await ledger.get_balance(company_id) >= 0


class TestLedgerReplay:
    """Property tests for ledger consistency"""

    @pytest.mark.asyncio
    @hypothesis_settings(max_examples=20, deadline=None)
    @given(
        operations=st.lists(
            st.tuples(
                st.sampled_from(["grant", "purchase", "unlock", "admin_deduction"]),
                st.integers(min_value=1, max_value=20),
            ),
            max_size=12,
        )
    )
    async def test_property_2_replay_matches_balance(self, operations):
        """
        Property 2: Ledger replay reproduces the stored balance

        For any sequence of grants and deductions, summing the ledger deltas
        from zero yields the stored balance, and only successful operations
        leave an entry.
        """
        async with fresh_database() as db:
            async with db.session_factory() as session:
                company = await create_user(session, role=UserRole.COMPANY)
                company_id = company.id
                ledger = CreditLedger(session)

                expected_balance = 0
                expected_entries = 0
                for kind, amount in operations:
                    if kind == "grant":
                        await ledger.grant(company_id, amount)
                    elif kind == "purchase":
                        await ledger.grant(company_id, amount, reason=CreditReason.PURCHASE)
                    else:
                        reason = CreditReason(
                            "profile_unlock" if kind == "unlock" else "admin_deduction"
                        )
                        try:
                            await ledger.deduct(company_id, amount, profile_id=uuid4(), reason=reason)
                        except InsufficientCreditsException:
                            assert amount > expected_balance
                            continue
                        amount = -amount
                    expected_balance += amount
                    expected_entries += 1

                replay = await ledger.replay(company_id)

                assert replay.consistent
                assert replay.stored_balance == expected_balance
                assert replay.total_added - replay.total_used == expected_balance
                assert len(await ledger.history(company_id)) == expected_entries


class TestUnlockIdempotence:
    """Property tests for repeated unlocks"""

    @pytest.mark.asyncio
    @hypothesis_settings(max_examples=15, deadline=None)
    @given(
        starting_balance=st.integers(min_value=1, max_value=10),
        attempts=st.integers(min_value=1, max_value=5),
    )
    async def test_property_3_unlock_idempotence(self, starting_balance, attempts):
        """
        Property 3: Unlock idempotence

        For any number of unlock requests for the same profile by the same
        user, the user is charged exactly once.
        """
        async with fresh_database() as db:
            async with db.session_factory() as session:
                company = await create_user(session, role=UserRole.COMPANY)
                company_id = company.id
                ledger = CreditLedger(session)
                await ledger.grant(company_id, starting_balance)
                profile_id = uuid4()

                results = [
                    await ledger.deduct(company_id, 1, profile_id=profile_id)
                    for _ in range(attempts)
                ]

                assert sum(result.charged for result in results) == 1
                assert all(result.already_unlocked for result in results[1:])
                assert await ledger.get_balance(company_id) == starting_balance - 1
                assert await ledger.unlocked_profile_ids(company_id) == [profile_id]
                assert len(await ledger.history(company_id)) == 2
