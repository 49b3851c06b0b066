"""User accounts: registration, login, profile updates and moderation."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from raxnet.auth import (
    create_access_token,
    decode_access_token,
    ensure_active,
    hash_password,
    verify_password,
)
from raxnet.config import settings
from raxnet.db_models import (
    Task,
    TaskWork,
    TaskWorkStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
    UserStatus,
)
from raxnet.errors import DuplicateEmail, InvalidInput, NotFound, Unauthorized
from raxnet.ids import user_id as make_user_id
from raxnet.services.transactions import record_transaction
from raxnet.utils import iso, parse_enum, status_str

logger = logging.getLogger("raxnet.users")


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": status_str(user.role),
        "status": status_str(user.status),
        "coin_balance": user.coin_balance,
        "google_id": user.google_id,
        "facebook_id": user.facebook_id,
        "two_factor_enabled": user.two_factor_enabled,
        "email_verified": user.email_verified,
        "last_login_at": iso(user.last_login_at),
        "created_at": iso(user.created_at),
        "updated_at": iso(user.updated_at),
    }


async def _email_taken(session: AsyncSession, email: str) -> bool:
    result = await session.execute(select(User.id).where(User.email == email))
    return result.first() is not None


async def register(
    session: AsyncSession,
    email: str,
    password: str,
    full_name: str,
    google_id: str | None = None,
    facebook_id: str | None = None,
) -> dict:
    email = email.strip().lower()
    if await _email_taken(session, email):
        raise DuplicateEmail("Email already registered")

    starting = settings.initial_coin_balance
    user = User(
        id=make_user_id(),
        email=email,
        password_hash=hash_password(password),
        full_name=full_name,
        coin_balance=starting,
        google_id=google_id,
        facebook_id=facebook_id,
    )
    session.add(user)
    if starting > 0:
        record_transaction(session, user.id, TransactionType.bonus, starting, "Welcome bonus")
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise DuplicateEmail("Email already registered") from e
    await session.refresh(user)

    logger.info("Registered user %s (%s)", user.id, email)
    return {"user": user_to_dict(user), "token": create_access_token(user)}


async def login(session: AsyncSession, email: str, password: str) -> dict:
    result = await session.execute(select(User).where(User.email == email.strip().lower()))
    user = result.scalar_one_or_none()
    if not user or not verify_password(password, user.password_hash):
        raise Unauthorized("Invalid credentials")
    ensure_active(user)

    now = datetime.now(UTC)
    user.last_login_at = now
    user.updated_at = now
    session.add(user)
    await session.commit()
    await session.refresh(user)

    logger.info("User %s logged in", user.id)
    return {"user": user_to_dict(user), "token": create_access_token(user)}


async def verify_token(session: AsyncSession, token: str) -> dict:
    claims = decode_access_token(token)
    user = await session.get(User, claims["sub"])
    if not user:
        raise Unauthorized("User not found")
    ensure_active(user)
    return user_to_dict(user)


async def get_users(
    session: AsyncSession,
    status: UserStatus | str | None = None,
    offset: int = 0,
    limit: int = 100,
) -> list[dict]:
    query = select(User)
    if status:
        query = query.where(User.status == parse_enum(UserStatus, status, "status"))
    query = query.order_by(User.created_at.desc()).offset(offset).limit(limit)  # type: ignore[attr-defined]
    result = await session.execute(query)
    return [user_to_dict(u) for u in result.scalars().all()]


async def get_user_by_id(session: AsyncSession, user_id: str) -> dict | None:
    user = await session.get(User, user_id)
    return user_to_dict(user) if user else None


async def update_user(
    session: AsyncSession,
    user_id: str,
    *,
    email: str | None = None,
    full_name: str | None = None,
    two_factor_enabled: bool | None = None,
    status: UserStatus | str | None = None,
    coin_balance: int | None = None,
) -> dict:
    """Profile update. ``status`` and ``coin_balance`` are admin overrides;
    callers decide who may pass them."""
    user = await session.get(User, user_id)
    if not user:
        raise NotFound("User not found")

    if email is not None:
        email = email.strip().lower()
        if email != user.email:
            if await _email_taken(session, email):
                raise DuplicateEmail("Email already registered")
            user.email = email
            user.email_verified = False
    if full_name is not None:
        user.full_name = full_name
    if two_factor_enabled is not None:
        user.two_factor_enabled = two_factor_enabled
    if status is not None:
        user.status = parse_enum(UserStatus, status, "status")
    if coin_balance is not None:
        if coin_balance < 0:
            raise InvalidInput("coin_balance cannot be negative")
        logger.warning(
            "Balance override for %s: %d -> %d", user_id, user.coin_balance, coin_balance
        )
        user.coin_balance = coin_balance
    user.updated_at = datetime.now(UTC)

    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user_to_dict(user)


async def get_user_stats(session: AsyncSession, user_id: str) -> dict:
    user = await session.get(User, user_id)
    if not user:
        raise NotFound("User not found")

    created = await session.execute(
        select(func.count()).select_from(Task).where(Task.creator_id == user_id)
    )
    completed = await session.execute(
        select(func.count())
        .select_from(TaskWork)
        .where(TaskWork.worker_id == user_id, TaskWork.status == TaskWorkStatus.verified)
    )

    async def _sum(tx_type: TransactionType) -> int:
        result = await session.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.user_id == user_id,
                Transaction.type == tx_type,
                Transaction.status == TransactionStatus.completed,
            )
        )
        return int(result.scalar_one())

    return {
        "total_tasks_created": created.scalar_one(),
        "total_tasks_completed": completed.scalar_one(),
        "total_coins_earned": await _sum(TransactionType.task_earning),
        # Refunds are negative task_payment rows, so this is net spend
        "total_coins_spent": await _sum(TransactionType.task_payment),
    }


async def _set_status(session: AsyncSession, user_id: str, status: UserStatus) -> dict:
    user = await session.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    user.status = status
    user.updated_at = datetime.now(UTC)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    logger.info("User %s is now %s", user_id, status.value)
    return user_to_dict(user)


async def block_user(session: AsyncSession, user_id: str) -> dict:
    return await _set_status(session, user_id, UserStatus.blocked)


async def suspend_user(session: AsyncSession, user_id: str) -> dict:
    return await _set_status(session, user_id, UserStatus.suspended)


async def activate_user(session: AsyncSession, user_id: str) -> dict:
    return await _set_status(session, user_id, UserStatus.active)
