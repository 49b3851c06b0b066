"""Test task allocation, lifecycle transitions and cancellation refunds."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from raxnet.errors import InsufficientBalance, InvalidInput, InvalidState, NotFound
from raxnet.services.task_works import create_task_work, get_task_work_by_id, verify_task_work
from raxnet.services.tasks import (
    cancel_task,
    create_task,
    get_task_by_id,
    get_task_stats,
    get_tasks,
    get_user_tasks,
    pause_task,
    resume_task,
    update_task,
)
from raxnet.services.transactions import get_transactions_by_user
from tests.conftest import balance_of, make_user


async def _task(db, creator_id: str, target: int = 10, price: int = 5, **kwargs) -> dict:
    async with db() as session:
        return await create_task(
            session,
            creator_id,
            kwargs.pop("platform", "instagram"),
            kwargs.pop("interaction_type", "like"),
            "https://instagram.com/p/abc123",
            target,
            price,
            **kwargs,
        )


@pytest.mark.asyncio
async def test_create_task_debits_allocation(db, creator):
    task = await _task(db, creator["id"], target=10, price=5)

    assert task["status"] == "active"
    assert task["total_coins_allocated"] == 50
    assert task["completed_interactions"] == 0
    assert task["id"].startswith("tk_")
    assert await balance_of(db, creator["id"]) == 950

    async with db() as session:
        txs = await get_transactions_by_user(session, creator["id"])
    payments = [t for t in txs if t["type"] == "task_payment"]
    assert len(payments) == 1
    assert payments[0]["amount"] == 50
    assert payments[0]["status"] == "completed"
    assert payments[0]["metadata"] == {"task_id": task["id"]}


@pytest.mark.asyncio
async def test_create_task_insufficient_balance_creates_nothing(db):
    poor = await make_user(db, "poor@example.com", balance=49)
    with pytest.raises(InsufficientBalance):
        await _task(db, poor["id"], target=10, price=5)

    assert await balance_of(db, poor["id"]) == 49
    async with db() as session:
        assert await get_user_tasks(session, poor["id"]) == []
        assert await get_transactions_by_user(session, poor["id"]) == []


@pytest.mark.asyncio
async def test_create_task_rolls_back_debit_when_insert_fails(db, creator, monkeypatch):
    first = await _task(db, creator["id"], target=2, price=5)
    assert await balance_of(db, creator["id"]) == 990

    monkeypatch.setattr("raxnet.services.tasks.make_task_id", lambda: first["id"])
    with pytest.raises(IntegrityError):
        await _task(db, creator["id"], target=10, price=5)

    assert await balance_of(db, creator["id"]) == 990
    async with db() as session:
        tasks = await get_user_tasks(session, creator["id"])
        txs = await get_transactions_by_user(session, creator["id"])
    assert [t["id"] for t in tasks] == [first["id"]]
    assert tasks[0]["target_interactions"] == 2
    assert [t["amount"] for t in txs if t["type"] == "task_payment"] == [10]


@pytest.mark.asyncio
async def test_create_task_price_outside_limits(db, creator):
    with pytest.raises(InvalidInput):
        await _task(db, creator["id"], target=1, price=101)
    assert await balance_of(db, creator["id"]) == 1000


@pytest.mark.asyncio
async def test_create_task_rejects_unknown_platform(db, creator):
    with pytest.raises(InvalidInput) as exc:
        await _task(db, creator["id"], platform="myspace")
    assert "instagram" in exc.value.detail


@pytest.mark.asyncio
async def test_create_task_rejects_non_positive_target(db, creator):
    with pytest.raises(InvalidInput):
        await _task(db, creator["id"], target=0)


@pytest.mark.asyncio
async def test_create_task_unknown_creator(db):
    with pytest.raises(NotFound):
        await _task(db, "us_missing")


@pytest.mark.asyncio
async def test_pause_and_resume(db, creator):
    task = await _task(db, creator["id"])
    async with db() as session:
        paused = await pause_task(session, task["id"])
    assert paused["status"] == "paused"

    async with db() as session:
        with pytest.raises(InvalidState):
            await pause_task(session, task["id"])

    async with db() as session:
        resumed = await resume_task(session, task["id"])
    assert resumed["status"] == "active"

    async with db() as session:
        with pytest.raises(InvalidState):
            await resume_task(session, task["id"])


@pytest.mark.asyncio
async def test_cancel_refunds_remaining_and_closes_pending_works(db, creator):
    task = await _task(db, creator["id"], target=10, price=5)
    w1 = await make_user(db, "w1@example.com")
    w2 = await make_user(db, "w2@example.com")
    w3 = await make_user(db, "w3@example.com")

    async with db() as session:
        work1 = await create_task_work(session, task["id"], w1["id"])
    async with db() as session:
        work2 = await create_task_work(session, task["id"], w2["id"])
    async with db() as session:
        work3 = await create_task_work(session, task["id"], w3["id"])
    async with db() as session:
        await verify_task_work(session, work1["id"])
    async with db() as session:
        await verify_task_work(session, work2["id"])

    async with db() as session:
        cancelled = await cancel_task(session, task["id"])
    assert cancelled["status"] == "cancelled"
    assert cancelled["completed_interactions"] == 2

    # 1000 - 50 allocated + 8 * 5 refunded
    assert await balance_of(db, creator["id"]) == 990
    assert await balance_of(db, w1["id"]) == 5

    async with db() as session:
        closed = await get_task_work_by_id(session, work3["id"])
    assert closed["status"] == "rejected"
    assert closed["verification_method"] == "task_cancelled"
    assert closed["coins_earned"] == 0
    assert await balance_of(db, w3["id"]) == 0

    async with db() as session:
        txs = await get_transactions_by_user(session, creator["id"])
    refunds = [t for t in txs if t["type"] == "task_payment" and t["amount"] < 0]
    assert len(refunds) == 1
    assert refunds[0]["amount"] == -40


@pytest.mark.asyncio
async def test_cancel_paused_task(db, creator):
    task = await _task(db, creator["id"], target=4, price=10)
    async with db() as session:
        await pause_task(session, task["id"])
    async with db() as session:
        await cancel_task(session, task["id"])
    assert await balance_of(db, creator["id"]) == 1000


@pytest.mark.asyncio
async def test_cancel_twice_refunds_once(db, creator):
    task = await _task(db, creator["id"], target=4, price=10)
    async with db() as session:
        await cancel_task(session, task["id"])
    async with db() as session:
        with pytest.raises(InvalidState):
            await cancel_task(session, task["id"])
    assert await balance_of(db, creator["id"]) == 1000


@pytest.mark.asyncio
async def test_completed_task_cannot_be_cancelled(db, creator, worker):
    task = await _task(db, creator["id"], target=1, price=10)
    async with db() as session:
        work = await create_task_work(session, task["id"], worker["id"])
    async with db() as session:
        await verify_task_work(session, work["id"])

    async with db() as session:
        assert (await get_task_by_id(session, task["id"]))["status"] == "completed"
        with pytest.raises(InvalidState):
            await cancel_task(session, task["id"])
    assert await balance_of(db, creator["id"]) == 990


@pytest.mark.asyncio
async def test_update_task_dispatches_status(db, creator):
    task = await _task(db, creator["id"])
    async with db() as session:
        assert (await update_task(session, task["id"], "paused"))["status"] == "paused"
    async with db() as session:
        assert (await update_task(session, task["id"], "active"))["status"] == "active"
    async with db() as session:
        with pytest.raises(InvalidState):
            await update_task(session, task["id"], "completed")
    async with db() as session:
        with pytest.raises(NotFound):
            await update_task(session, "tk_missing", "paused")


@pytest.mark.asyncio
async def test_get_tasks_filters(db, creator):
    await _task(db, creator["id"], platform="instagram", interaction_type="like")
    await _task(db, creator["id"], platform="tiktok", interaction_type="follow")
    yt = await _task(db, creator["id"], platform="youtube", interaction_type="subscribe")
    async with db() as session:
        await pause_task(session, yt["id"])

    async with db() as session:
        assert len(await get_tasks(session)) == 3
        tiktok = await get_tasks(session, platform="tiktok")
        assert [t["platform"] for t in tiktok] == ["tiktok"]
        assert len(await get_tasks(session, interaction_type="like")) == 1
        paused = await get_tasks(session, status="paused")
        assert [t["id"] for t in paused] == [yt["id"]]
        with pytest.raises(InvalidInput):
            await get_tasks(session, status="finished")


@pytest.mark.asyncio
async def test_task_stats(db, creator):
    await _task(db, creator["id"], target=10, price=5, platform="instagram")
    second = await _task(db, creator["id"], target=2, price=10, platform="twitter")
    async with db() as session:
        await pause_task(session, second["id"])

    async with db() as session:
        stats = await get_task_stats(session)
    assert stats["total_active_tasks"] == 1
    assert stats["total_completed_tasks"] == 0
    assert stats["total_task_value"] == 70
    assert stats["tasks_by_platform"]["instagram"] == 1
    assert stats["tasks_by_platform"]["twitter"] == 1
    assert stats["tasks_by_platform"]["facebook"] == 0
