"""Test task work submission and the verify / reject lifecycle."""

from __future__ import annotations

import pytest
from sqlalchemy import update

from raxnet.db_models import Task
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
from raxnet.services.task_works import (
    auto_verify_task_work,
    create_task_work,
    get_pending_task_works,
    get_task_work_by_id,
    get_task_works_by_task,
    get_task_works_by_user,
    reject_task_work,
    verify_task_work,
)
from raxnet.services.tasks import create_task, get_task_by_id, pause_task
from raxnet.services.transactions import get_transactions_by_user
from tests.conftest import balance_of, make_user


async def _task(db, creator_id: str, target: int = 3, price: int = 7, verify: bool = True):
    async with db() as session:
        return await create_task(
            session,
            creator_id,
            "tiktok",
            "follow",
            "https://tiktok.com/@someone",
            target,
            price,
            requires_verification=verify,
        )


async def _submit(db, task_id: str, worker_id: str, proof: str | None = None) -> dict:
    async with db() as session:
        return await create_task_work(session, task_id, worker_id, proof)


@pytest.mark.asyncio
async def test_submit_creates_pending_work(db, creator, worker):
    task = await _task(db, creator["id"])
    work = await _submit(db, task["id"], worker["id"], "https://img.example.com/proof.png")

    assert work["status"] == "pending"
    assert work["coins_earned"] == 7
    assert work["proof_screenshot"] == "https://img.example.com/proof.png"
    assert work["verified_at"] is None
    assert await balance_of(db, worker["id"]) == 0


@pytest.mark.asyncio
async def test_verify_pays_worker_and_counts(db, creator, worker):
    task = await _task(db, creator["id"])
    work = await _submit(db, task["id"], worker["id"])

    async with db() as session:
        verified = await verify_task_work(session, work["id"], admin_notes="Looks good")
    assert verified["status"] == "verified"
    assert verified["verification_method"] == "manual"
    assert verified["admin_notes"] == "Looks good"
    assert verified["verified_at"] is not None

    assert await balance_of(db, worker["id"]) == 7
    async with db() as session:
        task_after = await get_task_by_id(session, task["id"])
        txs = await get_transactions_by_user(session, worker["id"])
    assert task_after["completed_interactions"] == 1
    assert task_after["status"] == "active"
    assert len(txs) == 1
    assert txs[0]["type"] == "task_earning"
    assert txs[0]["amount"] == 7
    assert txs[0]["metadata"]["task_work_id"] == work["id"]


@pytest.mark.asyncio
async def test_reaching_target_completes_task(db, creator, worker):
    task = await _task(db, creator["id"], target=1)
    work = await _submit(db, task["id"], worker["id"])
    async with db() as session:
        await verify_task_work(session, work["id"])

    async with db() as session:
        done = await get_task_by_id(session, task["id"])
    assert done["status"] == "completed"
    assert done["completed_interactions"] == 1
    assert done["completed_at"] is not None

    late = await make_user(db, "late@example.com")
    with pytest.raises(TaskNotActive):
        await _submit(db, task["id"], late["id"])


@pytest.mark.asyncio
async def test_completing_task_closes_other_pending_works(db, creator):
    task = await _task(db, creator["id"], target=1)
    w1 = await make_user(db, "w1@example.com")
    w2 = await make_user(db, "w2@example.com")
    first = await _submit(db, task["id"], w1["id"])
    second = await _submit(db, task["id"], w2["id"])

    async with db() as session:
        await verify_task_work(session, first["id"])

    async with db() as session:
        closed = await get_task_work_by_id(session, second["id"])
        task_after = await get_task_by_id(session, task["id"])
        pending = await get_pending_task_works(session)
    assert closed["status"] == "rejected"
    assert closed["verification_method"] == "target_reached"
    assert closed["coins_earned"] == 0
    assert closed["verified_at"] is None
    assert pending == []
    assert task_after["status"] == "completed"
    assert task_after["completed_interactions"] == 1

    async with db() as session:
        with pytest.raises(AlreadyProcessed):
            await verify_task_work(session, second["id"])
    assert await balance_of(db, w2["id"]) == 0


@pytest.mark.asyncio
async def test_verify_refused_when_counter_already_full(db, creator, worker):
    task = await _task(db, creator["id"], target=1)
    work = await _submit(db, task["id"], worker["id"])
    # A concurrent verification filled the counter before the task flipped to completed
    async with db() as session:
        await session.execute(
            update(Task).where(Task.id == task["id"]).values(completed_interactions=1)
        )
        await session.commit()

    async with db() as session:
        with pytest.raises(TargetReached):
            await verify_task_work(session, work["id"])

    async with db() as session:
        still = await get_task_work_by_id(session, work["id"])
    assert still["status"] == "pending"
    assert still["verified_at"] is None
    assert await balance_of(db, worker["id"]) == 0


@pytest.mark.asyncio
async def test_duplicate_submission(db, creator, worker):
    task = await _task(db, creator["id"])
    await _submit(db, task["id"], worker["id"])
    with pytest.raises(DuplicateWork):
        await _submit(db, task["id"], worker["id"])


@pytest.mark.asyncio
async def test_creator_cannot_work_own_task(db, creator):
    task = await _task(db, creator["id"])
    with pytest.raises(SelfWork):
        await _submit(db, task["id"], creator["id"])


@pytest.mark.asyncio
async def test_submit_to_paused_or_missing_task(db, creator, worker):
    task = await _task(db, creator["id"])
    async with db() as session:
        await pause_task(session, task["id"])
    with pytest.raises(TaskNotActive):
        await _submit(db, task["id"], worker["id"])
    with pytest.raises(NotFound):
        await _submit(db, "tk_missing", worker["id"])


@pytest.mark.asyncio
async def test_no_verification_required_pays_immediately(db, creator, worker):
    task = await _task(db, creator["id"], target=2, price=4, verify=False)
    work = await _submit(db, task["id"], worker["id"])

    assert work["status"] == "verified"
    assert work["verification_method"] == "automatic"
    assert await balance_of(db, worker["id"]) == 4
    async with db() as session:
        assert (await get_task_by_id(session, task["id"]))["completed_interactions"] == 1


@pytest.mark.asyncio
async def test_verify_twice(db, creator, worker):
    task = await _task(db, creator["id"])
    work = await _submit(db, task["id"], worker["id"])
    async with db() as session:
        await verify_task_work(session, work["id"])
    async with db() as session:
        with pytest.raises(AlreadyVerified):
            await verify_task_work(session, work["id"])
    assert await balance_of(db, worker["id"]) == 7


@pytest.mark.asyncio
async def test_reject(db, creator, worker):
    task = await _task(db, creator["id"])
    work = await _submit(db, task["id"], worker["id"])

    async with db() as session:
        rejected = await reject_task_work(session, work["id"], "Screenshot does not show a follow")
    assert rejected["status"] == "rejected"
    assert rejected["verification_method"] == "manual_rejection"
    assert rejected["coins_earned"] == 0
    assert rejected["admin_notes"] == "Screenshot does not show a follow"
    assert rejected["verified_at"] is None
    assert await balance_of(db, worker["id"]) == 0

    async with db() as session:
        with pytest.raises(AlreadyProcessed):
            await verify_task_work(session, work["id"])
    async with db() as session:
        with pytest.raises(AlreadyProcessed):
            await reject_task_work(session, work["id"], "again")

    async with db() as session:
        after = await get_task_work_by_id(session, work["id"])
        task_after = await get_task_by_id(session, task["id"])
    assert after == rejected
    assert task_after["completed_interactions"] == 0
    assert await balance_of(db, worker["id"]) == 0


@pytest.mark.asyncio
async def test_verify_rejects_non_verification_method(db, creator, worker):
    task = await _task(db, creator["id"])
    work = await _submit(db, task["id"], worker["id"])
    async with db() as session:
        with pytest.raises(InvalidInput):
            await verify_task_work(session, work["id"], method="manual_rejection")


@pytest.mark.asyncio
async def test_auto_verify_uses_checker(db, creator, worker):
    task = await _task(db, creator["id"])
    work = await _submit(db, task["id"], worker["id"])

    async def nope(task, work):
        return False

    async with db() as session:
        with pytest.raises(InvalidState) as exc:
            await auto_verify_task_work(session, work["id"], checker=nope)
    assert exc.value.code == "INTERACTION_NOT_CONFIRMED"
    async with db() as session:
        assert (await get_task_work_by_id(session, work["id"]))["status"] == "pending"

    async with db() as session:
        verified = await auto_verify_task_work(session, work["id"])
    assert verified["status"] == "verified"
    assert verified["verification_method"] == "api_automatic"
    assert verified["admin_notes"] == "Automatically verified via API"
    assert await balance_of(db, worker["id"]) == 7


@pytest.mark.asyncio
async def test_work_listings(db, creator):
    task = await _task(db, creator["id"])
    w1 = await make_user(db, "w1@example.com")
    w2 = await make_user(db, "w2@example.com")
    first = await _submit(db, task["id"], w1["id"])
    second = await _submit(db, task["id"], w2["id"])
    async with db() as session:
        await verify_task_work(session, second["id"])

    async with db() as session:
        pending = await get_pending_task_works(session)
        by_task = await get_task_works_by_task(session, task["id"])
        by_user = await get_task_works_by_user(session, w1["id"])
        missing = await get_task_work_by_id(session, "tw_missing")
    assert [w["id"] for w in pending] == [first["id"]]
    assert {w["id"] for w in by_task} == {first["id"], second["id"]}
    assert [w["id"] for w in by_user] == [first["id"]]
    assert missing is None
