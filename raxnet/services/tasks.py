"""Task allocator: up-front allocation, pause/resume and cancellation refunds."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from raxnet.database import atomic
from raxnet.db_models import (
    InteractionType,
    Platform,
    Task,
    TaskStatus,
    TaskWork,
    TaskWorkStatus,
    TransactionType,
    User,
    VerificationMethod,
)
from raxnet.errors import InvalidInput, InvalidState, NotFound
from raxnet.ids import task_id as make_task_id
from raxnet.services import ledger
from raxnet.services.system_settings import get_coin_limits
from raxnet.services.transactions import record_transaction
from raxnet.utils import iso, parse_enum, status_str

logger = logging.getLogger("raxnet.tasks")


def _task_to_dict(task: Task) -> dict:
    return {
        "id": task.id,
        "creator_id": task.creator_id,
        "platform": status_str(task.platform),
        "interaction_type": status_str(task.interaction_type),
        "target_url": task.target_url,
        "target_interactions": task.target_interactions,
        "completed_interactions": task.completed_interactions,
        "coins_per_interaction": task.coins_per_interaction,
        "total_coins_allocated": task.total_coins_allocated,
        "status": status_str(task.status),
        "requires_verification": task.requires_verification,
        "created_at": iso(task.created_at),
        "updated_at": iso(task.updated_at),
        "completed_at": iso(task.completed_at),
    }


async def create_task(
    session: AsyncSession,
    creator_id: str,
    platform: Platform | str,
    interaction_type: InteractionType | str,
    target_url: str,
    target_interactions: int,
    coins_per_interaction: int,
    requires_verification: bool = True,
) -> dict:
    """Create a task, debiting the creator for the whole allocation up front."""
    platform = parse_enum(Platform, platform, "platform")
    interaction_type = parse_enum(InteractionType, interaction_type, "interaction_type")
    if target_interactions <= 0:
        raise InvalidInput("target_interactions must be positive")
    if coins_per_interaction <= 0:
        raise InvalidInput("coins_per_interaction must be positive")

    creator = await session.get(User, creator_id)
    if not creator:
        raise NotFound("Creator not found")

    limits = await get_coin_limits(session)
    lo, hi = limits["min_coins_per_interaction"], limits["max_coins_per_interaction"]
    if not lo <= coins_per_interaction <= hi:
        raise InvalidInput(f"coins_per_interaction must be between {lo} and {hi}")

    total = target_interactions * coins_per_interaction
    task = Task(
        id=make_task_id(),
        creator_id=creator_id,
        platform=platform,
        interaction_type=interaction_type,
        target_url=target_url,
        target_interactions=target_interactions,
        coins_per_interaction=coins_per_interaction,
        total_coins_allocated=total,
        requires_verification=requires_verification,
    )

    async with atomic(session):
        await ledger.debit(session, creator_id, total)
        session.add(task)
        record_transaction(
            session,
            creator_id,
            TransactionType.task_payment,
            total,
            f"Payment for task {task.id}",
            metadata={"task_id": task.id},
        )

    await session.refresh(task)
    logger.info(
        "Task %s created by %s: %d x %d = %d coins",
        task.id,
        creator_id,
        target_interactions,
        coins_per_interaction,
        total,
    )
    return _task_to_dict(task)


async def get_tasks(
    session: AsyncSession,
    platform: Platform | str | None = None,
    interaction_type: InteractionType | str | None = None,
    status: TaskStatus | str | None = None,
) -> list[dict]:
    query = select(Task)
    if platform:
        query = query.where(Task.platform == parse_enum(Platform, platform, "platform"))
    if interaction_type:
        query = query.where(
            Task.interaction_type
            == parse_enum(InteractionType, interaction_type, "interaction_type")
        )
    if status:
        query = query.where(Task.status == parse_enum(TaskStatus, status, "status"))
    result = await session.execute(query.order_by(Task.created_at.desc()))  # type: ignore[attr-defined]
    return [_task_to_dict(t) for t in result.scalars().all()]


async def get_task_by_id(session: AsyncSession, task_id: str) -> dict | None:
    task = await session.get(Task, task_id)
    return _task_to_dict(task) if task else None


async def get_user_tasks(session: AsyncSession, user_id: str) -> list[dict]:
    result = await session.execute(
        select(Task).where(Task.creator_id == user_id).order_by(Task.created_at.desc())  # type: ignore[attr-defined]
    )
    return [_task_to_dict(t) for t in result.scalars().all()]


async def _load_task(session: AsyncSession, task_id: str) -> Task:
    task = await session.get(Task, task_id)
    if not task:
        raise NotFound("Task not found")
    return task


async def _transition(
    session: AsyncSession, task: Task, from_statuses: tuple[TaskStatus, ...], to: TaskStatus
) -> None:
    result = await session.execute(
        update(Task)
        .where(Task.id == task.id, or_(*(Task.status == s for s in from_statuses)))
        .values(status=to, updated_at=datetime.now(UTC))
    )
    if result.rowcount == 0:
        await session.refresh(task)
        raise InvalidState(f"Task is {status_str(task.status)}, cannot move to {to.value}")


async def pause_task(session: AsyncSession, task_id: str) -> dict:
    task = await _load_task(session, task_id)
    await _transition(session, task, (TaskStatus.active,), TaskStatus.paused)
    await session.commit()
    await session.refresh(task)
    logger.info("Task %s paused", task_id)
    return _task_to_dict(task)


async def resume_task(session: AsyncSession, task_id: str) -> dict:
    task = await _load_task(session, task_id)
    await _transition(session, task, (TaskStatus.paused,), TaskStatus.active)
    await session.commit()
    await session.refresh(task)
    logger.info("Task %s resumed", task_id)
    return _task_to_dict(task)


async def cancel_task(session: AsyncSession, task_id: str) -> dict:
    """Cancel an active or paused task.

    The unused allocation (price x remaining interactions) goes back to the
    creator and every still-pending work on the task is closed.
    """
    task = await _load_task(session, task_id)

    async with atomic(session):
        await _transition(
            session, task, (TaskStatus.active, TaskStatus.paused), TaskStatus.cancelled
        )
        # Read the counter after the status flip so no verification can slip in between
        result = await session.execute(
            select(Task.completed_interactions).where(Task.id == task_id)
        )
        completed = result.scalar_one()
        refund = task.coins_per_interaction * (task.target_interactions - completed)
        if refund > 0:
            await ledger.credit(session, task.creator_id, refund)
            record_transaction(
                session,
                task.creator_id,
                TransactionType.task_payment,
                -refund,
                f"Refund for cancelled task {task_id}",
                metadata={"task_id": task_id},
            )
        closed = await session.execute(
            update(TaskWork)
            .where(TaskWork.task_id == task_id, TaskWork.status == TaskWorkStatus.pending)
            .values(
                status=TaskWorkStatus.rejected,
                verification_method=VerificationMethod.task_cancelled,
                coins_earned=0,
                admin_notes="Task cancelled",
            )
        )

    await session.refresh(task)
    logger.info(
        "Task %s cancelled: refunded %d to %s, closed %d pending works",
        task_id,
        refund,
        task.creator_id,
        closed.rowcount,
    )
    return _task_to_dict(task)


async def update_task(session: AsyncSession, task_id: str, status: TaskStatus | str) -> dict:
    """Administrative status change; allocation fields never change after creation."""
    status = parse_enum(TaskStatus, status, "status")
    if status == TaskStatus.paused:
        return await pause_task(session, task_id)
    if status == TaskStatus.active:
        return await resume_task(session, task_id)
    if status == TaskStatus.cancelled:
        return await cancel_task(session, task_id)
    await _load_task(session, task_id)
    raise InvalidState("Tasks complete automatically when their target is reached")


async def get_task_stats(session: AsyncSession) -> dict:
    async def _count(status: TaskStatus) -> int:
        result = await session.execute(
            select(func.count()).select_from(Task).where(Task.status == status)
        )
        return result.scalar_one()

    value_result = await session.execute(
        select(func.coalesce(func.sum(Task.total_coins_allocated), 0))
    )
    platform_result = await session.execute(
        select(Task.platform, func.count()).group_by(Task.platform)
    )
    by_platform = {p.value: 0 for p in Platform}
    for platform, count in platform_result.all():
        by_platform[status_str(platform)] = count

    return {
        "total_active_tasks": await _count(TaskStatus.active),
        "total_completed_tasks": await _count(TaskStatus.completed),
        "total_task_value": int(value_result.scalar_one()),
        "tasks_by_platform": by_platform,
    }
