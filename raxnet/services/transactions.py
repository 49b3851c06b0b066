"""Transaction processor: top-ups, withdrawals and internal movement records.

A pending top-up or withdrawal touches the ledger exactly once, at the
conditional ``pending -> completed`` claim. Everything else is bookkeeping.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from raxnet.database import atomic
from raxnet.db_models import (
    PaymentMethod,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
)
from raxnet.errors import InsufficientBalance, InvalidInput, NotFound, NotPending, WrongType
from raxnet.ids import transaction_id as make_transaction_id
from raxnet.services import ledger
from raxnet.services.system_settings import get_coin_limits
from raxnet.utils import iso, parse_enum, safe_json_loads, status_str

logger = logging.getLogger("raxnet.transactions")

_EXTERNAL_TYPES = (TransactionType.topup, TransactionType.withdrawal)


def transaction_to_dict(tx: Transaction) -> dict:
    return {
        "id": tx.id,
        "user_id": tx.user_id,
        "type": status_str(tx.type),
        "amount": tx.amount,
        "status": status_str(tx.status),
        "payment_method": status_str(tx.payment_method),
        "external_transaction_id": tx.external_transaction_id,
        "description": tx.description,
        "metadata": safe_json_loads(tx.metadata_json),
        "created_at": iso(tx.created_at),
        "processed_at": iso(tx.processed_at),
    }


def record_transaction(
    session: AsyncSession,
    user_id: str,
    tx_type: TransactionType,
    amount: int,
    description: str,
    metadata: dict | None = None,
) -> Transaction:
    """Add a completed internal movement record to the caller's transaction."""
    now = datetime.now(UTC)
    tx = Transaction(
        id=make_transaction_id(),
        user_id=user_id,
        type=tx_type,
        amount=amount,
        status=TransactionStatus.completed,
        description=description,
        metadata_json=json.dumps(metadata) if metadata else None,
        created_at=now,
        processed_at=now,
    )
    session.add(tx)
    return tx


async def create_transaction(
    session: AsyncSession,
    user_id: str,
    tx_type: TransactionType | str,
    amount: int,
    description: str,
    payment_method: PaymentMethod | str | None = None,
    metadata: dict | None = None,
) -> dict:
    tx_type = parse_enum(TransactionType, tx_type, "type")
    if payment_method is not None:
        payment_method = parse_enum(PaymentMethod, payment_method, "payment_method")

    user = await session.get(User, user_id)
    if not user:
        raise NotFound("User not found")

    if tx_type in _EXTERNAL_TYPES and amount <= 0:
        raise InvalidInput("Amount must be positive")

    if tx_type == TransactionType.withdrawal:
        limits = await get_coin_limits(session)
        if amount < limits["min_withdrawal_amount"]:
            raise InvalidInput(
                f"Minimum withdrawal is {limits['min_withdrawal_amount']} coins, got {amount}"
            )
        balance = await ledger.get_balance(session, user_id)
        if balance < amount:
            raise InsufficientBalance(f"Insufficient balance. Have {balance}, need {amount}")

    tx = Transaction(
        id=make_transaction_id(),
        user_id=user_id,
        type=tx_type,
        amount=amount,
        status=TransactionStatus.pending,
        payment_method=payment_method,
        description=description,
        metadata_json=json.dumps(metadata) if metadata else None,
    )
    session.add(tx)
    await session.commit()
    await session.refresh(tx)
    logger.info("Transaction %s created: %s %d for %s", tx.id, tx_type.value, amount, user_id)
    return transaction_to_dict(tx)


async def get_transactions_by_user(session: AsyncSession, user_id: str) -> list[dict]:
    user = await session.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    result = await session.execute(
        select(Transaction)
        .where(Transaction.user_id == user_id)
        .order_by(Transaction.created_at.desc())  # type: ignore[union-attr]
    )
    return [transaction_to_dict(tx) for tx in result.scalars().all()]


async def get_transaction_by_id(session: AsyncSession, tx_id: str) -> dict | None:
    tx = await session.get(Transaction, tx_id)
    return transaction_to_dict(tx) if tx else None


async def get_all_transactions(
    session: AsyncSession,
    tx_type: TransactionType | str | None = None,
    status: TransactionStatus | str | None = None,
    offset: int = 0,
    limit: int = 100,
) -> list[dict]:
    query = select(Transaction)
    if tx_type:
        query = query.where(Transaction.type == parse_enum(TransactionType, tx_type, "type"))
    if status:
        query = query.where(Transaction.status == parse_enum(TransactionStatus, status, "status"))
    query = query.order_by(Transaction.created_at.desc()).offset(offset).limit(limit)  # type: ignore[union-attr]
    result = await session.execute(query)
    return [transaction_to_dict(tx) for tx in result.scalars().all()]


async def _load_pending_candidate(
    session: AsyncSession, tx_id: str, expected: TransactionType
) -> Transaction:
    tx = await session.get(Transaction, tx_id)
    if not tx:
        raise NotFound("Transaction not found")
    if tx.type != expected:
        raise WrongType(f"Transaction is {status_str(tx.type)}, not {expected.value}")
    return tx


async def _claim_pending(
    session: AsyncSession,
    tx_id: str,
    new_status: TransactionStatus,
    external_transaction_id: str | None = None,
) -> None:
    """Atomic pending -> new_status transition; NotPending if someone got there first."""
    values: dict = {"status": new_status}
    if new_status in (TransactionStatus.completed, TransactionStatus.failed):
        values["processed_at"] = datetime.now(UTC)
    if external_transaction_id is not None:
        values["external_transaction_id"] = external_transaction_id
    result = await session.execute(
        update(Transaction)
        .where(Transaction.id == tx_id, Transaction.status == TransactionStatus.pending)
        .values(**values)
    )
    if result.rowcount == 0:
        raise NotPending("Transaction is not pending")


async def process_topup(
    session: AsyncSession, tx_id: str, external_transaction_id: str | None = None
) -> dict:
    """Complete a pending top-up and credit the user, exactly once."""
    tx = await _load_pending_candidate(session, tx_id, TransactionType.topup)
    user_id, amount = tx.user_id, tx.amount

    async with atomic(session):
        await _claim_pending(session, tx_id, TransactionStatus.completed, external_transaction_id)
        await ledger.credit(session, user_id, amount)

    await session.refresh(tx)
    logger.info("Top-up %s completed: +%d for %s", tx_id, amount, user_id)
    return transaction_to_dict(tx)


async def process_withdrawal(
    session: AsyncSession, tx_id: str, external_transaction_id: str | None = None
) -> dict:
    """Complete a pending withdrawal, debiting the user.

    If the balance no longer covers the amount, the transaction is marked
    failed (and that is committed) before InsufficientBalance is raised.
    """
    tx = await _load_pending_candidate(session, tx_id, TransactionType.withdrawal)
    user_id, amount = tx.user_id, tx.amount

    try:
        async with atomic(session):
            await _claim_pending(
                session, tx_id, TransactionStatus.completed, external_transaction_id
            )
            await ledger.debit(session, user_id, amount)
    except InsufficientBalance:
        await _claim_pending(session, tx_id, TransactionStatus.failed)
        await session.commit()
        logger.warning("Withdrawal %s failed: insufficient balance for %s", tx_id, user_id)
        raise

    await session.refresh(tx)
    logger.info("Withdrawal %s completed: -%d for %s", tx_id, amount, user_id)
    return transaction_to_dict(tx)


async def update_transaction(
    session: AsyncSession,
    tx_id: str,
    status: TransactionStatus | str,
    external_transaction_id: str | None = None,
) -> dict:
    """Gateway-callback transition of a pending transaction.

    Completing a top-up or withdrawal goes through the processors so the
    balance moves with it; every other transition is status bookkeeping.
    """
    status = parse_enum(TransactionStatus, status, "status")
    tx = await session.get(Transaction, tx_id)
    if not tx:
        raise NotFound("Transaction not found")
    if tx.status != TransactionStatus.pending:
        raise NotPending(f"Transaction is {status_str(tx.status)}, only pending can change")

    if status == TransactionStatus.completed:
        if tx.type == TransactionType.topup:
            return await process_topup(session, tx_id, external_transaction_id)
        if tx.type == TransactionType.withdrawal:
            return await process_withdrawal(session, tx_id, external_transaction_id)

    await _claim_pending(session, tx_id, status, external_transaction_id)
    await session.commit()
    await session.refresh(tx)
    logger.info("Transaction %s -> %s", tx_id, status.value)
    return transaction_to_dict(tx)


async def get_transaction_stats(session: AsyncSession) -> dict:
    async def _completed_sum(tx_type: TransactionType) -> int:
        result = await session.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.type == tx_type,
                Transaction.status == TransactionStatus.completed,
            )
        )
        return int(result.scalar_one())

    total_topups = await _completed_sum(TransactionType.topup)
    total_withdrawals = await _completed_sum(TransactionType.withdrawal)

    pending_result = await session.execute(
        select(func.count())
        .select_from(Transaction)
        .where(Transaction.status == TransactionStatus.pending)
    )
    return {
        "total_topups": total_topups,
        "total_withdrawals": total_withdrawals,
        "total_volume": total_topups + total_withdrawals,
        "pending_transactions": pending_result.scalar_one(),
    }
