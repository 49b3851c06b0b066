"""Insert-only audit trail of user and admin actions."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from raxnet.db_models import ActivityLog
from raxnet.utils import iso

logger = logging.getLogger("raxnet.activity")


def _log_to_dict(log: ActivityLog) -> dict:
    return {
        "id": log.id,
        "user_id": log.user_id,
        "action": log.action,
        "resource_type": log.resource_type,
        "resource_id": log.resource_id,
        "details": log.details,
        "ip_address": log.ip_address,
        "user_agent": log.user_agent,
        "created_at": iso(log.created_at),
    }


async def create_activity_log(
    session: AsyncSession,
    *,
    user_id: str | None,
    action: str,
    resource_type: str,
    ip_address: str,
    resource_id: str | None = None,
    details: str | None = None,
    user_agent: str | None = None,
) -> dict:
    log = ActivityLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    session.add(log)
    await session.commit()
    await session.refresh(log)
    logger.debug("Activity %s on %s/%s by %s", action, resource_type, resource_id, user_id)
    return _log_to_dict(log)


async def get_activity_logs(
    session: AsyncSession,
    user_id: str | None = None,
    action: str | None = None,
    resource_type: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    limit: int = 100,
) -> list[dict]:
    """Newest first, optionally filtered."""
    query = select(ActivityLog)
    if user_id:
        query = query.where(ActivityLog.user_id == user_id)
    if action:
        query = query.where(ActivityLog.action == action)
    if resource_type:
        query = query.where(ActivityLog.resource_type == resource_type)
    if start_date:
        query = query.where(ActivityLog.created_at >= start_date)
    if end_date:
        query = query.where(ActivityLog.created_at <= end_date)
    query = query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit)  # type: ignore[union-attr]
    result = await session.execute(query)
    return [_log_to_dict(log) for log in result.scalars().all()]


async def get_user_activity_logs(session: AsyncSession, user_id: str, limit: int = 50) -> list[dict]:
    return await get_activity_logs(session, user_id=user_id, limit=limit)


async def log_user_login(
    session: AsyncSession, user_id: str, ip_address: str, user_agent: str | None = None
) -> dict:
    return await create_activity_log(
        session,
        user_id=user_id,
        action="user_login",
        resource_type="auth",
        resource_id=user_id,
        details="User logged in successfully",
        ip_address=ip_address,
        user_agent=user_agent,
    )


async def log_task_creation(session: AsyncSession, user_id: str, task_id: str, ip_address: str) -> dict:
    return await create_activity_log(
        session,
        user_id=user_id,
        action="task_created",
        resource_type="task",
        resource_id=task_id,
        details="User created a new task",
        ip_address=ip_address,
    )


async def log_task_work(session: AsyncSession, user_id: str, task_work_id: str, ip_address: str) -> dict:
    return await create_activity_log(
        session,
        user_id=user_id,
        action="task_completed",
        resource_type="task_work",
        resource_id=task_work_id,
        details="User completed a task",
        ip_address=ip_address,
    )


async def log_transaction(
    session: AsyncSession, user_id: str, transaction_id: str, action: str, ip_address: str
) -> dict:
    return await create_activity_log(
        session,
        user_id=user_id,
        action=f"transaction_{action}",
        resource_type="transaction",
        resource_id=transaction_id,
        details=f"Transaction {action}",
        ip_address=ip_address,
    )


async def log_admin_action(
    session: AsyncSession,
    admin_id: str,
    action: str,
    resource_type: str,
    resource_id: str | None = None,
    details: str | None = None,
    ip_address: str = "127.0.0.1",
) -> dict:
    return await create_activity_log(
        session,
        user_id=admin_id,
        action=f"admin_{action}",
        resource_type=resource_type,
        resource_id=resource_id,
        details=details or f"Admin performed {action} on {resource_type}",
        ip_address=ip_address,
    )
