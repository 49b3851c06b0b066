"""Work verifier: the pending -> verified | rejected lifecycle of a task work.

Verifying a work is the moment money moves: the task's counter goes up,
the worker is credited, and the task completes when it hits its target.
Completing a task also closes every work still pending on it.
All of that happens in one transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from raxnet.config import settings
from raxnet.database import atomic
from raxnet.db_models import (
    Task,
    TaskStatus,
    TaskWork,
    TaskWorkStatus,
    TransactionType,
    User,
    VerificationMethod,
)
from raxnet.errors import (
    AlreadyProcessed,
    AlreadyVerified,
    DuplicateWork,
    InvalidInput,
    InvalidState,
    NotFound,
    SelfWork,
    TargetReached,
    TaskNotActive,
)
from raxnet.ids import task_work_id as make_task_work_id
from raxnet.services import ledger
from raxnet.services.transactions import record_transaction
from raxnet.utils import iso, parse_enum, status_str

logger = logging.getLogger("raxnet.task_works")

InteractionChecker = Callable[[Task, TaskWork], Awaitable[bool]]

VERIFY_METHODS = (
    VerificationMethod.manual,
    VerificationMethod.automatic,
    VerificationMethod.api_automatic,
)


async def confirm_interaction(task: Task, work: TaskWork) -> bool:
    """Default checker. No social platform API is wired in, so every interaction is confirmed."""
    logger.debug("Interaction check for work %s on %s: assumed confirmed", work.id, task.target_url)
    return True


def _work_to_dict(work: TaskWork) -> dict:
    return {
        "id": work.id,
        "task_id": work.task_id,
        "worker_id": work.worker_id,
        "status": status_str(work.status),
        "coins_earned": work.coins_earned,
        "completed_at": iso(work.completed_at),
        "verified_at": iso(work.verified_at),
        "verification_method": status_str(work.verification_method),
        "proof_screenshot": work.proof_screenshot,
        "admin_notes": work.admin_notes,
    }


def _raise_not_pending(work: TaskWork) -> None:
    if work.status == TaskWorkStatus.verified:
        raise AlreadyVerified("Task work has already been verified")
    raise AlreadyProcessed(f"Task work has already been processed ({status_str(work.status)})")


async def _apply_verification(
    session: AsyncSession,
    work: TaskWork,
    method: VerificationMethod,
    notes: str | None,
) -> None:
    """Verify a pending work inside the caller's transaction."""
    now = datetime.now(UTC)
    result = await session.execute(
        update(TaskWork)
        .where(TaskWork.id == work.id, TaskWork.status == TaskWorkStatus.pending)
        .values(
            status=TaskWorkStatus.verified,
            verified_at=now,
            verification_method=method,
            admin_notes=notes,
        )
    )
    if result.rowcount == 0:
        await session.refresh(work)
        _raise_not_pending(work)

    counted = await session.execute(
        update(Task)
        .where(
            Task.id == work.task_id,
            Task.status != TaskStatus.cancelled,
            Task.completed_interactions < Task.target_interactions,
        )
        .values(completed_interactions=Task.completed_interactions + 1, updated_at=now)
    )
    if counted.rowcount == 0:
        status = (
            await session.execute(select(Task.status).where(Task.id == work.task_id))
        ).scalar_one()
        if status == TaskStatus.cancelled:
            raise TaskNotActive("Task was cancelled")
        raise TargetReached("Task has already reached its target interactions")

    finished = await session.execute(
        update(Task)
        .where(
            Task.id == work.task_id,
            Task.status != TaskStatus.completed,
            Task.completed_interactions >= Task.target_interactions,
        )
        .values(status=TaskStatus.completed, completed_at=now)
    )
    if finished.rowcount:
        closed = await session.execute(
            update(TaskWork)
            .where(TaskWork.task_id == work.task_id, TaskWork.status == TaskWorkStatus.pending)
            .values(
                status=TaskWorkStatus.rejected,
                verification_method=VerificationMethod.target_reached,
                coins_earned=0,
                admin_notes="Task reached its target",
            )
        )
        logger.info(
            "Task %s reached its target and is now completed, closed %d pending works",
            work.task_id,
            closed.rowcount,
        )

    await ledger.credit(session, work.worker_id, work.coins_earned)
    record_transaction(
        session,
        work.worker_id,
        TransactionType.task_earning,
        work.coins_earned,
        f"Earning for task work {work.id}",
        metadata={"task_id": work.task_id, "task_work_id": work.id},
    )


async def create_task_work(
    session: AsyncSession,
    task_id: str,
    worker_id: str,
    proof_screenshot: str | None = None,
) -> dict:
    task = await session.get(Task, task_id)
    if not task:
        raise NotFound("Task not found")
    if task.status != TaskStatus.active:
        raise TaskNotActive(f"Task is {status_str(task.status)}, not active")
    if task.completed_interactions >= task.target_interactions:
        raise TargetReached("Task has already reached its target interactions")

    worker = await session.get(User, worker_id)
    if not worker:
        raise NotFound("Worker not found")

    existing = await session.execute(
        select(TaskWork.id).where(TaskWork.task_id == task_id, TaskWork.worker_id == worker_id)
    )
    if existing.first():
        raise DuplicateWork("Worker has already completed this task")

    if task.creator_id == worker_id:
        raise SelfWork("Task creator cannot work on their own task")

    work = TaskWork(
        id=make_task_work_id(),
        task_id=task_id,
        worker_id=worker_id,
        coins_earned=task.coins_per_interaction,
        proof_screenshot=proof_screenshot,
    )
    auto = not task.requires_verification

    try:
        async with atomic(session):
            session.add(work)
            await session.flush()
            if auto:
                await _apply_verification(session, work, VerificationMethod.automatic, None)
    except IntegrityError as e:
        # Lost a race against a concurrent submission for the same pair
        raise DuplicateWork("Worker has already completed this task") from e

    await session.refresh(work)
    logger.info(
        "Task work %s submitted by %s on %s%s",
        work.id,
        worker_id,
        task_id,
        " (auto-verified)" if auto else "",
    )
    return _work_to_dict(work)


async def get_task_works_by_user(session: AsyncSession, user_id: str) -> list[dict]:
    result = await session.execute(
        select(TaskWork)
        .where(TaskWork.worker_id == user_id)
        .order_by(TaskWork.completed_at.desc())  # type: ignore[attr-defined]
    )
    return [_work_to_dict(w) for w in result.scalars().all()]


async def get_task_works_by_task(session: AsyncSession, task_id: str) -> list[dict]:
    result = await session.execute(
        select(TaskWork)
        .where(TaskWork.task_id == task_id)
        .order_by(TaskWork.completed_at.desc())  # type: ignore[attr-defined]
    )
    return [_work_to_dict(w) for w in result.scalars().all()]


async def get_pending_task_works(session: AsyncSession) -> list[dict]:
    """Review queue, oldest submission first."""
    result = await session.execute(
        select(TaskWork)
        .where(TaskWork.status == TaskWorkStatus.pending)
        .order_by(TaskWork.completed_at.asc())  # type: ignore[attr-defined]
    )
    return [_work_to_dict(w) for w in result.scalars().all()]


async def get_task_work_by_id(session: AsyncSession, work_id: str) -> dict | None:
    work = await session.get(TaskWork, work_id)
    return _work_to_dict(work) if work else None


async def _load_pending_work(session: AsyncSession, work_id: str) -> TaskWork:
    work = await session.get(TaskWork, work_id)
    if not work:
        raise NotFound("Task work not found")
    if work.status != TaskWorkStatus.pending:
        _raise_not_pending(work)
    return work


async def verify_task_work(
    session: AsyncSession,
    work_id: str,
    method: VerificationMethod | str = VerificationMethod.manual,
    admin_notes: str | None = None,
) -> dict:
    method = parse_enum(VerificationMethod, method, "verification_method")
    if method not in VERIFY_METHODS:
        raise InvalidInput(f"{method.value} is not a verification method")

    work = await _load_pending_work(session, work_id)
    async with atomic(session):
        await _apply_verification(session, work, method, admin_notes)

    await session.refresh(work)
    logger.info(
        "Task work %s verified (%s): +%d to %s",
        work_id,
        method.value,
        work.coins_earned,
        work.worker_id,
    )
    return _work_to_dict(work)


async def reject_task_work(session: AsyncSession, work_id: str, reason: str) -> dict:
    work = await session.get(TaskWork, work_id)
    if not work:
        raise NotFound("Task work not found")

    result = await session.execute(
        update(TaskWork)
        .where(TaskWork.id == work_id, TaskWork.status == TaskWorkStatus.pending)
        .values(
            status=TaskWorkStatus.rejected,
            verification_method=VerificationMethod.manual_rejection,
            admin_notes=reason,
            coins_earned=0,
        )
    )
    if result.rowcount == 0:
        await session.refresh(work)
        _raise_not_pending(work)
    await session.commit()
    await session.refresh(work)
    logger.info("Task work %s rejected: %s", work_id, reason)
    return _work_to_dict(work)


async def auto_verify_task_work(
    session: AsyncSession,
    work_id: str,
    checker: InteractionChecker | None = None,
) -> dict:
    """Ask ``checker`` whether the interaction really happened, then verify.

    A negative answer leaves the work pending.
    """
    work = await _load_pending_work(session, work_id)
    task = await session.get(Task, work.task_id)
    if not task:
        raise NotFound("Task not found")

    confirmed = await (checker or confirm_interaction)(task, work)
    if not confirmed:
        raise InvalidState(
            "Interaction could not be confirmed on the platform",
            code="INTERACTION_NOT_CONFIRMED",
        )

    return await verify_task_work(
        session, work_id, VerificationMethod.api_automatic, settings.auto_verify_note
    )
