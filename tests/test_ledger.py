"""Test the account ledger: conditional credits and debits."""

from __future__ import annotations

import pytest

from raxnet.errors import InsufficientBalance, InvalidInput, NotFound
from raxnet.services import ledger
from tests.conftest import balance_of, make_user


@pytest.mark.asyncio
async def test_credit_and_debit(db):
    user = await make_user(db, "a@example.com")
    async with db() as session:
        await ledger.credit(session, user["id"], 50)
        await ledger.debit(session, user["id"], 20)
        await session.commit()
    assert await balance_of(db, user["id"]) == 30


@pytest.mark.asyncio
async def test_debit_exact_balance_reaches_zero(db):
    user = await make_user(db, "a@example.com", balance=40)
    async with db() as session:
        await ledger.debit(session, user["id"], 40)
        await session.commit()
    assert await balance_of(db, user["id"]) == 0


@pytest.mark.asyncio
async def test_debit_more_than_balance_fails_and_leaves_balance(db):
    user = await make_user(db, "a@example.com", balance=10)
    async with db() as session:
        with pytest.raises(InsufficientBalance) as exc:
            await ledger.debit(session, user["id"], 11)
        assert "Have 10, need 11" in exc.value.detail
        await session.rollback()
    assert await balance_of(db, user["id"]) == 10


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -5])
async def test_non_positive_amounts_rejected(db, amount):
    user = await make_user(db, "a@example.com", balance=10)
    async with db() as session:
        with pytest.raises(InvalidInput):
            await ledger.credit(session, user["id"], amount)
        with pytest.raises(InvalidInput):
            await ledger.debit(session, user["id"], amount)


@pytest.mark.asyncio
async def test_unknown_user(db):
    async with db() as session:
        with pytest.raises(NotFound):
            await ledger.credit(session, "us_missing", 5)
        with pytest.raises(NotFound):
            await ledger.debit(session, "us_missing", 5)
        with pytest.raises(NotFound):
            await ledger.get_balance(session, "us_missing")
