"""
Tests for balance credit/debit.
"""

import uuid

import pytest

from busticket.core.exceptions import InsufficientBalance, UserNotFound
from busticket.models.user import User
from busticket.services import ledger


@pytest.mark.asyncio
async def test_debit_and_credit(db_session, rider):
    rider_id = rider.id

    await ledger.debit(db_session, rider_id, 300)
    assert await ledger.get_balance(db_session, rider_id) == 500

    await ledger.credit(db_session, rider_id, 120)
    assert await ledger.get_balance(db_session, rider_id) == 620


@pytest.mark.asyncio
async def test_debit_to_exactly_zero(db_session, rider):
    await ledger.debit(db_session, rider.id, 800)
    assert await ledger.get_balance(db_session, rider.id) == 0


@pytest.mark.asyncio
async def test_overdraft_is_rejected_without_writing(db_session, rider):
    rider_id = rider.id

    with pytest.raises(InsufficientBalance) as exc:
        await ledger.debit(db_session, rider_id, 801)

    assert exc.value.balance == 800
    assert exc.value.required == 801
    assert exc.value.status_code == 402
    assert await ledger.get_balance(db_session, rider_id) == 800


@pytest.mark.asyncio
async def test_zero_credit_is_a_noop(db_session, rider):
    await ledger.credit(db_session, rider.id, 0)
    assert await ledger.get_balance(db_session, rider.id) == 800


@pytest.mark.asyncio
async def test_negative_amounts_are_programming_errors(db_session, rider):
    with pytest.raises(ValueError):
        await ledger.credit(db_session, rider.id, -1)
    with pytest.raises(ValueError):
        await ledger.debit(db_session, rider.id, -1)


@pytest.mark.asyncio
async def test_credit_unknown_user(db_session):
    with pytest.raises(UserNotFound):
        await ledger.credit(db_session, uuid.uuid4(), 10)


@pytest.mark.asyncio
async def test_new_account_gets_default_balance(db_session):
    user = User(email="fresh@example.com", full_name="Fresh Rider")
    db_session.add(user)
    await db_session.commit()

    assert await ledger.get_balance(db_session, user.id) == 800
