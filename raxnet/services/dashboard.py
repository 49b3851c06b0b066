"""Read-only aggregates for the user and admin dashboards."""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime, timedelta

from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

import raxnet
from raxnet.config import settings
from raxnet.db_models import (
    Platform,
    Task,
    TaskStatus,
    TaskWork,
    TaskWorkStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
    UserStatus,
)
from raxnet.errors import NotFound
from raxnet.services.activity_logs import get_activity_logs, get_user_activity_logs
from raxnet.services.transactions import transaction_to_dict
from raxnet.services.users import get_user_stats, user_to_dict
from raxnet.utils import status_str

logger = logging.getLogger("raxnet.dashboard")

_STARTED_AT = time.monotonic()

# Money that actually crossed the platform boundary
_VOLUME_TYPES = (TransactionType.topup, TransactionType.withdrawal)


async def get_user_dashboard(session: AsyncSession, user_id: str) -> dict:
    user = await session.get(User, user_id)
    if not user:
        raise NotFound("User not found")

    stats = await get_user_stats(session, user_id)
    tx_result = await session.execute(
        select(Transaction)
        .where(Transaction.user_id == user_id)
        .order_by(Transaction.created_at.desc())  # type: ignore[attr-defined]
        .limit(settings.recent_items_limit)
    )
    return {
        "user": user_to_dict(user),
        "coin_balance": user.coin_balance,
        "stats": stats,
        "recent_transactions": [transaction_to_dict(t) for t in tx_result.scalars().all()],
        "recent_activities": await get_user_activity_logs(
            session, user_id, limit=settings.recent_items_limit
        ),
    }


async def _count(session: AsyncSession, model, *where) -> int:
    result = await session.execute(select(func.count()).select_from(model).where(*where))
    return result.scalar_one()


async def get_admin_dashboard(session: AsyncSession) -> dict:
    since = datetime.now(UTC) - timedelta(days=settings.growth_window_days)
    completed_volume = (
        Transaction.status == TransactionStatus.completed,
        Transaction.type.in_(_VOLUME_TYPES),  # type: ignore[attr-defined]
    )

    value_result = await session.execute(
        select(func.coalesce(func.sum(Transaction.amount), 0)).where(*completed_volume)
    )
    stats = {
        "total_users": await _count(session, User),
        "active_users": await _count(session, User, User.status == UserStatus.active),
        "total_tasks": await _count(session, Task),
        "active_tasks": await _count(session, Task, Task.status == TaskStatus.active),
        "total_transaction_value": int(value_result.scalar_one()),
        "pending_verifications": await _count(
            session, TaskWork, TaskWork.status == TaskWorkStatus.pending
        ),
    }

    user_day = func.date(User.created_at)
    growth_result = await session.execute(
        select(user_day, func.count())
        .where(User.created_at >= since)
        .group_by(user_day)
        .order_by(user_day)
    )
    tx_day = func.date(Transaction.created_at)
    volume_result = await session.execute(
        select(tx_day, func.sum(Transaction.amount))
        .where(Transaction.created_at >= since, *completed_volume)
        .group_by(tx_day)
        .order_by(tx_day)
    )
    platform_result = await session.execute(
        select(Task.platform, func.count()).group_by(Task.platform)
    )
    platform_stats = {p.value: 0 for p in Platform}
    for platform, count in platform_result.all():
        platform_stats[status_str(platform)] = count

    return {
        "stats": stats,
        "user_growth_data": [{"date": str(d), "count": c} for d, c in growth_result.all()],
        "transaction_data": [
            {"date": str(d), "volume": int(v or 0)} for d, v in volume_result.all()
        ],
        "platform_stats": platform_stats,
        "recent_activities": await get_activity_logs(
            session, limit=settings.admin_recent_activities_limit
        ),
    }


async def get_system_health(session: AsyncSession) -> dict:
    """Database is probed for real; payment gateway and social APIs are stubbed externals."""
    checks = {"database": True, "payment_gateway": True, "social_media_apis": True}
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Database health probe failed")
        checks["database"] = False

    if not checks["database"]:
        status = "critical"
    elif not all(checks.values()):
        status = "warning"
    else:
        status = "healthy"

    return {
        "status": status,
        "checks": checks,
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
        "version": raxnet.__version__,
    }
