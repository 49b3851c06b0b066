"""Test the activity log helpers and queries."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from raxnet.services.activity_logs import (
    create_activity_log,
    get_activity_logs,
    get_user_activity_logs,
    log_admin_action,
    log_task_creation,
    log_task_work,
    log_transaction,
    log_user_login,
)


@pytest.mark.asyncio
async def test_helpers_write_expected_actions(db, worker, admin):
    async with db() as session:
        login = await log_user_login(session, worker["id"], "10.0.0.1", "pytest-agent")
        task = await log_task_creation(session, worker["id"], "tk_1", "10.0.0.1")
        work = await log_task_work(session, worker["id"], "tw_1", "10.0.0.1")
        tx = await log_transaction(session, worker["id"], "tx_1", "created", "10.0.0.1")
        adm = await log_admin_action(session, admin["id"], "block_user", "user", worker["id"])

    assert (login["action"], login["resource_type"], login["user_agent"]) == (
        "user_login",
        "auth",
        "pytest-agent",
    )
    assert (task["action"], task["resource_type"], task["resource_id"]) == (
        "task_created",
        "task",
        "tk_1",
    )
    assert (work["action"], work["resource_type"]) == ("task_completed", "task_work")
    assert (tx["action"], tx["details"]) == ("transaction_created", "Transaction created")
    assert adm["action"] == "admin_block_user"
    assert adm["ip_address"] == "127.0.0.1"
    assert adm["details"] == "Admin performed block_user on user"


@pytest.mark.asyncio
async def test_query_filters_and_order(db, worker, admin):
    async with db() as session:
        first = await log_user_login(session, worker["id"], "10.0.0.1")
        second = await log_task_creation(session, worker["id"], "tk_1", "10.0.0.1")
        await log_admin_action(session, admin["id"], "verify_task_work", "task_work", "tw_1")

    async with db() as session:
        everything = await get_activity_logs(session)
        mine = await get_user_activity_logs(session, worker["id"])
        logins = await get_activity_logs(session, action="user_login")
        works = await get_activity_logs(session, resource_type="task_work")
        limited = await get_activity_logs(session, limit=1)
    assert len(everything) == 3
    assert [log["id"] for log in mine] == [second["id"], first["id"]]
    assert [log["id"] for log in logins] == [first["id"]]
    assert [log["user_id"] for log in works] == [admin["id"]]
    assert len(limited) == 1


@pytest.mark.asyncio
async def test_date_range_filter(db):
    async with db() as session:
        await create_activity_log(
            session,
            user_id=None,
            action="system_check",
            resource_type="system",
            ip_address="127.0.0.1",
        )
    now = datetime.now(UTC)
    async with db() as session:
        assert len(await get_activity_logs(session, start_date=now - timedelta(hours=1))) == 1
        assert await get_activity_logs(session, end_date=now - timedelta(hours=1)) == []
