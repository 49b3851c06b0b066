"""Account ledger: the only code path that changes a user's coin balance.

Both mutations are single conditional UPDATE statements, so concurrent
callers can never read-modify-write the same balance. Callers own the
surrounding transaction scope and the activity logging.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from raxnet.db_models import User
from raxnet.errors import InsufficientBalance, InvalidInput, NotFound

logger = logging.getLogger("raxnet.ledger")


def _check_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise InvalidInput(f"Amount must be a positive integer, got {amount!r}")


async def get_balance(session: AsyncSession, user_id: str) -> int:
    """Read the balance straight from the table, bypassing any cached User."""
    result = await session.execute(select(User.coin_balance).where(User.id == user_id))
    balance = result.scalar_one_or_none()
    if balance is None:
        raise NotFound("User not found")
    return balance


async def credit(session: AsyncSession, user_id: str, amount: int) -> None:
    _check_amount(amount)
    result = await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(coin_balance=User.coin_balance + amount, updated_at=datetime.now(UTC))
    )
    if result.rowcount == 0:
        raise NotFound("User not found")
    logger.info("Credited %d coins to %s", amount, user_id)


async def debit(session: AsyncSession, user_id: str, amount: int) -> None:
    _check_amount(amount)
    result = await session.execute(
        update(User)
        .where(User.id == user_id, User.coin_balance >= amount)
        .values(coin_balance=User.coin_balance - amount, updated_at=datetime.now(UTC))
    )
    if result.rowcount == 0:
        have = await get_balance(session, user_id)
        raise InsufficientBalance(f"Insufficient balance. Have {have}, need {amount}")
    logger.info("Debited %d coins from %s", amount, user_id)
