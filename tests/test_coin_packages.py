"""Test the coin package catalog and purchases."""

from __future__ import annotations

from decimal import Decimal

import pytest

from raxnet.errors import InvalidInput, NotFound
from raxnet.services.coin_packages import (
    create_coin_package,
    deactivate_coin_package,
    get_coin_package_by_id,
    get_coin_packages,
    price_to_cents,
    purchase_coin_package,
    update_coin_package,
)
from raxnet.services.transactions import process_topup
from tests.conftest import balance_of


@pytest.mark.parametrize(
    "price,cents",
    [
        (9.99, 999),
        ("4.5", 450),
        (Decimal("0.005"), 1),
        (100, 10000),
        (1_000_000, 100_000_000),
    ],
)
def test_price_to_cents(price, cents):
    assert price_to_cents(price) == cents


@pytest.mark.parametrize("price", [0, -1, "free", 1e300, "1000000.01", "inf"])
def test_price_to_cents_rejects(price):
    with pytest.raises(InvalidInput):
        price_to_cents(price)


@pytest.mark.asyncio
async def test_catalog_lists_active_by_price(db):
    async with db() as session:
        big = await create_coin_package(session, "Big", 1000, 49.99, bonus_coins=100)
        small = await create_coin_package(session, "Small", 100, 4.99)
        old = await create_coin_package(session, "Retired", 500, 19.99)
        await deactivate_coin_package(session, old["id"])

    async with db() as session:
        catalog = await get_coin_packages(session)
        retired = await get_coin_package_by_id(session, old["id"])
    assert [p["id"] for p in catalog] == [small["id"], big["id"]]
    assert catalog[1]["price"] == 49.99
    assert catalog[1]["bonus_coins"] == 100
    assert retired["is_active"] is False


@pytest.mark.asyncio
async def test_update_package(db):
    async with db() as session:
        package = await create_coin_package(session, "Starter", 100, 4.99)
    async with db() as session:
        updated = await update_coin_package(
            session, package["id"], name="Starter+", price=5.49, bonus_coins=10
        )
    assert updated["name"] == "Starter+"
    assert updated["price"] == 5.49
    assert updated["bonus_coins"] == 10
    assert updated["coin_amount"] == 100

    async with db() as session:
        with pytest.raises(InvalidInput):
            await update_coin_package(session, package["id"], coin_amount=0)
        with pytest.raises(NotFound):
            await update_coin_package(session, "cp_missing", name="x")


@pytest.mark.asyncio
async def test_create_package_validation(db):
    async with db() as session:
        with pytest.raises(InvalidInput):
            await create_coin_package(session, "Empty", 0, 1.00)
        with pytest.raises(InvalidInput):
            await create_coin_package(session, "Negative bonus", 10, 1.00, bonus_coins=-1)
        with pytest.raises(InvalidInput):
            await create_coin_package(session, "Whale", 10, 1e300)
        assert await get_coin_packages(session) == []


@pytest.mark.asyncio
async def test_purchase_opens_pending_topup(db, worker):
    async with db() as session:
        package = await create_coin_package(session, "Value", 500, 19.99, bonus_coins=50)

    async with db() as session:
        result = await purchase_coin_package(session, package["id"], worker["id"], "duitku")
    tx = result["transaction"]
    assert result["package"]["id"] == package["id"]
    assert tx["type"] == "topup"
    assert tx["status"] == "pending"
    assert tx["amount"] == 550
    assert tx["payment_method"] == "duitku"
    assert tx["metadata"] == {
        "package_id": package["id"],
        "coin_amount": 500,
        "bonus_coins": 50,
        "price": 19.99,
    }
    assert await balance_of(db, worker["id"]) == 0

    async with db() as session:
        await process_topup(session, tx["id"])
    assert await balance_of(db, worker["id"]) == 550


@pytest.mark.asyncio
async def test_purchase_inactive_or_bad_method(db, worker):
    async with db() as session:
        package = await create_coin_package(session, "Gone", 100, 1.99)
        await deactivate_coin_package(session, package["id"])

    async with db() as session:
        with pytest.raises(NotFound):
            await purchase_coin_package(session, package["id"], worker["id"], "manual")
        with pytest.raises(InvalidInput):
            await purchase_coin_package(session, package["id"], worker["id"], "paypal")
