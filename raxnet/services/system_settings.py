"""Typed accessors over the key/value system settings table."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from raxnet.db_models import SystemSetting
from raxnet.errors import InvalidInput
from raxnet.utils import iso

logger = logging.getLogger("raxnet.settings")

# key -> (default value, description)
DEFAULTS: dict[str, tuple[str, str]] = {
    "commission_rate": ("0.05", "Commission rate for system (5%)"),
    "min_coins_per_interaction": ("1", "Minimum coins per interaction"),
    "max_coins_per_interaction": ("100", "Maximum coins per interaction"),
    "min_withdrawal_amount": ("100", "Minimum withdrawal amount in coins"),
}


def _setting_to_dict(s: SystemSetting) -> dict:
    return {
        "id": s.id,
        "key": s.key,
        "value": s.value,
        "description": s.description,
        "updated_at": iso(s.updated_at),
    }


async def _get_row(session: AsyncSession, key: str) -> SystemSetting | None:
    result = await session.execute(select(SystemSetting).where(SystemSetting.key == key))
    return result.scalar_one_or_none()


async def get_system_settings(session: AsyncSession) -> list[dict]:
    result = await session.execute(select(SystemSetting).order_by(SystemSetting.key))
    return [_setting_to_dict(s) for s in result.scalars().all()]


async def get_system_setting(session: AsyncSession, key: str) -> dict | None:
    """Return one setting. Documented keys are created with their default on first read."""
    row = await _get_row(session, key)
    if row is None:
        if key not in DEFAULTS:
            return None
        value, description = DEFAULTS[key]
        row = SystemSetting(key=key, value=value, description=description)
        session.add(row)
        try:
            await session.commit()
        except IntegrityError:
            # Another request created it between our read and insert
            await session.rollback()
            row = await _get_row(session, key)
            assert row is not None
        else:
            await session.refresh(row)
            logger.info("Created default setting %s=%s", key, value)
    return _setting_to_dict(row)


def _overwrite(row: SystemSetting, value: str, description: str | None) -> None:
    row.value = value
    if description is not None:
        row.description = description
    row.updated_at = datetime.now(UTC)


async def update_system_setting(
    session: AsyncSession, key: str, value: str, description: str | None = None
) -> dict:
    row = await _get_row(session, key)
    if row is None:
        initial = description
        if initial is None and key in DEFAULTS:
            initial = DEFAULTS[key][1]
        row = SystemSetting(key=key, value=value, description=initial)
        session.add(row)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            row = await _get_row(session, key)
            assert row is not None
            _overwrite(row, value, description)
            session.add(row)
            await session.commit()
    else:
        _overwrite(row, value, description)
        session.add(row)
        await session.commit()
    await session.refresh(row)
    logger.info("Setting %s updated to %s", key, value)
    return _setting_to_dict(row)


async def initialize_default_settings(session: AsyncSession) -> list[dict]:
    """Create any missing documented settings; existing rows are left alone."""
    result = await session.execute(
        select(SystemSetting).where(SystemSetting.key.in_(list(DEFAULTS)))  # type: ignore[attr-defined]
    )
    existing = {s.key: s for s in result.scalars().all()}
    created = []
    for key, (value, description) in DEFAULTS.items():
        if key not in existing:
            row = SystemSetting(key=key, value=value, description=description)
            session.add(row)
            existing[key] = row
            created.append(key)
    if created:
        await session.commit()
        logger.info("Initialized default settings: %s", ", ".join(created))
    rows = [existing[k] for k in DEFAULTS]
    for row in rows:
        await session.refresh(row)
    return [_setting_to_dict(r) for r in rows]


async def _get_value(session: AsyncSession, key: str) -> str:
    setting = await get_system_setting(session, key)
    assert setting is not None
    return setting["value"]


async def get_commission_rate(session: AsyncSession) -> float:
    raw = await _get_value(session, "commission_rate")
    try:
        return float(raw)
    except ValueError as e:
        raise InvalidInput(f"Invalid commission_rate setting: {raw!r}") from e


async def get_coin_limits(session: AsyncSession) -> dict:
    limits = {}
    for key in ("min_coins_per_interaction", "max_coins_per_interaction", "min_withdrawal_amount"):
        raw = await _get_value(session, key)
        try:
            limits[key] = int(raw)
        except ValueError as e:
            raise InvalidInput(f"Invalid {key} setting: {raw!r}") from e
    return limits
