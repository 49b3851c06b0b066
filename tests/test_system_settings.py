"""Test the system settings store and its typed accessors."""

from __future__ import annotations

import pytest

from raxnet.errors import InvalidInput
from raxnet.services import system_settings
from raxnet.services.system_settings import (
    get_coin_limits,
    get_commission_rate,
    get_system_setting,
    get_system_settings,
    initialize_default_settings,
    update_system_setting,
)


@pytest.mark.asyncio
async def test_initialize_creates_documented_defaults(db):
    async with db() as session:
        rows = await initialize_default_settings(session)
    assert {r["key"]: r["value"] for r in rows} == {
        "commission_rate": "0.05",
        "min_coins_per_interaction": "1",
        "max_coins_per_interaction": "100",
        "min_withdrawal_amount": "100",
    }


@pytest.mark.asyncio
async def test_initialize_keeps_existing_values(db):
    async with db() as session:
        await update_system_setting(session, "commission_rate", "0.1")
    async with db() as session:
        await initialize_default_settings(session)
        await initialize_default_settings(session)
    async with db() as session:
        rows = await get_system_settings(session)
    assert len(rows) == 4
    assert {r["key"]: r["value"] for r in rows}["commission_rate"] == "0.1"


@pytest.mark.asyncio
async def test_get_setting_creates_default_lazily(db):
    async with db() as session:
        assert await get_system_settings(session) == []
        setting = await get_system_setting(session, "min_withdrawal_amount")
        assert setting["value"] == "100"
        assert setting["description"] == "Minimum withdrawal amount in coins"
        assert len(await get_system_settings(session)) == 1
        assert await get_system_setting(session, "no_such_key") is None


@pytest.mark.asyncio
async def test_update_upserts(db):
    async with db() as session:
        created = await update_system_setting(session, "maintenance_mode", "off", "Site banner")
        updated = await update_system_setting(session, "maintenance_mode", "on")
    assert created["id"] == updated["id"]
    assert updated["value"] == "on"
    assert updated["description"] == "Site banner"


@pytest.mark.asyncio
async def test_typed_accessors(db):
    async with db() as session:
        assert await get_commission_rate(session) == 0.05
        assert await get_coin_limits(session) == {
            "min_coins_per_interaction": 1,
            "max_coins_per_interaction": 100,
            "min_withdrawal_amount": 100,
        }
        await update_system_setting(session, "max_coins_per_interaction", "250")
        assert (await get_coin_limits(session))["max_coins_per_interaction"] == 250


@pytest.mark.asyncio
async def test_malformed_values_raise(db):
    async with db() as session:
        await update_system_setting(session, "commission_rate", "five percent")
        with pytest.raises(InvalidInput):
            await get_commission_rate(session)
        await update_system_setting(session, "min_withdrawal_amount", "1.5")
        with pytest.raises(InvalidInput):
            await get_coin_limits(session)


def _miss_first_read(monkeypatch):
    """Make the next settings lookup miss, as if another request inserted the row just after."""
    real = system_settings._get_row
    calls = {"n": 0}

    async def stale(session, key):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return await real(session, key)

    monkeypatch.setattr(system_settings, "_get_row", stale)


@pytest.mark.asyncio
async def test_first_read_survives_concurrent_default_insert(db, monkeypatch):
    async with db() as session:
        await update_system_setting(session, "commission_rate", "0.2")

    _miss_first_read(monkeypatch)
    async with db() as session:
        setting = await get_system_setting(session, "commission_rate")
    assert setting["value"] == "0.2"

    async with db() as session:
        rows = await get_system_settings(session)
    assert [r["key"] for r in rows] == ["commission_rate"]


@pytest.mark.asyncio
async def test_update_survives_concurrent_insert(db, monkeypatch):
    async with db() as session:
        await update_system_setting(session, "commission_rate", "0.2")

    _miss_first_read(monkeypatch)
    async with db() as session:
        setting = await update_system_setting(session, "commission_rate", "0.3")
    assert setting["value"] == "0.3"
    assert setting["description"] == "Commission rate for system (5%)"

    async with db() as session:
        rows = await get_system_settings(session)
    assert [(r["key"], r["value"]) for r in rows] == [("commission_rate", "0.3")]
