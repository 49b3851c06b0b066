"""Coin package catalog and purchases.

Prices are stored as integer cents and spoken in major units at the
boundary.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from raxnet.db_models import CoinPackage, PaymentMethod, TransactionType
from raxnet.errors import InvalidInput, NotFound
from raxnet.ids import coin_package_id as make_coin_package_id
from raxnet.services.transactions import create_transaction
from raxnet.utils import iso, parse_enum

logger = logging.getLogger("raxnet.coin_packages")

# 1,000,000.00 in major units
MAX_PRICE_CENTS = 100_000_000


def price_to_cents(price: float | str | Decimal) -> int:
    """9.99 -> 999, rounding half up to the cent."""
    try:
        cents = (Decimal(str(price)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise InvalidInput(f"Invalid price {price!r}") from e
    if cents <= 0:
        raise InvalidInput("Price must be positive")
    if cents > MAX_PRICE_CENTS:
        raise InvalidInput(f"Price must not exceed {cents_to_price(MAX_PRICE_CENTS):.2f}")
    return int(cents)


def cents_to_price(cents: int) -> float:
    return cents / 100


def _package_to_dict(p: CoinPackage) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "coin_amount": p.coin_amount,
        "price": cents_to_price(p.price_cents),
        "bonus_coins": p.bonus_coins,
        "is_active": p.is_active,
        "created_at": iso(p.created_at),
        "updated_at": iso(p.updated_at),
    }


async def get_coin_packages(session: AsyncSession) -> list[dict]:
    result = await session.execute(
        select(CoinPackage)
        .where(CoinPackage.is_active == True)  # noqa: E712
        .order_by(CoinPackage.price_cents)
    )
    return [_package_to_dict(p) for p in result.scalars().all()]


async def get_coin_package_by_id(session: AsyncSession, package_id: str) -> dict | None:
    package = await session.get(CoinPackage, package_id)
    return _package_to_dict(package) if package else None


async def create_coin_package(
    session: AsyncSession,
    name: str,
    coin_amount: int,
    price: float | str | Decimal,
    bonus_coins: int = 0,
) -> dict:
    if coin_amount <= 0:
        raise InvalidInput("coin_amount must be positive")
    if bonus_coins < 0:
        raise InvalidInput("bonus_coins cannot be negative")
    package = CoinPackage(
        id=make_coin_package_id(),
        name=name,
        coin_amount=coin_amount,
        price_cents=price_to_cents(price),
        bonus_coins=bonus_coins,
    )
    session.add(package)
    await session.commit()
    await session.refresh(package)
    logger.info("Coin package %s created: %s", package.id, name)
    return _package_to_dict(package)


async def update_coin_package(session: AsyncSession, package_id: str, **fields) -> dict:
    """Partial update. Accepts name, coin_amount, price, bonus_coins, is_active."""
    package = await session.get(CoinPackage, package_id)
    if not package:
        raise NotFound("Coin package not found")

    if fields.get("name") is not None:
        package.name = fields["name"]
    if fields.get("coin_amount") is not None:
        if fields["coin_amount"] <= 0:
            raise InvalidInput("coin_amount must be positive")
        package.coin_amount = fields["coin_amount"]
    if fields.get("price") is not None:
        package.price_cents = price_to_cents(fields["price"])
    if fields.get("bonus_coins") is not None:
        if fields["bonus_coins"] < 0:
            raise InvalidInput("bonus_coins cannot be negative")
        package.bonus_coins = fields["bonus_coins"]
    if fields.get("is_active") is not None:
        package.is_active = fields["is_active"]
    package.updated_at = datetime.now(UTC)

    session.add(package)
    await session.commit()
    await session.refresh(package)
    return _package_to_dict(package)


async def deactivate_coin_package(session: AsyncSession, package_id: str) -> dict:
    package = await session.get(CoinPackage, package_id)
    if not package:
        raise NotFound("Coin package not found")
    package.is_active = False
    package.updated_at = datetime.now(UTC)
    session.add(package)
    await session.commit()
    await session.refresh(package)
    logger.info("Coin package %s deactivated", package_id)
    return _package_to_dict(package)


async def purchase_coin_package(
    session: AsyncSession,
    package_id: str,
    user_id: str,
    payment_method: PaymentMethod | str,
) -> dict:
    """Open a pending top-up for the package; coins arrive when it is processed."""
    payment_method = parse_enum(PaymentMethod, payment_method, "payment_method")
    package = await session.get(CoinPackage, package_id)
    if not package or not package.is_active:
        raise NotFound("Coin package not found or inactive")

    price = cents_to_price(package.price_cents)
    transaction = await create_transaction(
        session,
        user_id,
        TransactionType.topup,
        package.coin_amount + package.bonus_coins,
        f"Purchase of {package.name}",
        payment_method=payment_method,
        metadata={
            "package_id": package.id,
            "coin_amount": package.coin_amount,
            "bonus_coins": package.bonus_coins,
            "price": price,
        },
    )
    return {"transaction": transaction, "package": _package_to_dict(package)}
