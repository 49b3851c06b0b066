"""Async engine, per-request sessions and the ``atomic`` transaction scope."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import sqlalchemy
from alembic import command
from alembic.config import Config
from alembic.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import select

from raxnet.config import settings
# Imported to register every table on SQLModel.metadata
from raxnet.db_models import (  # noqa: F401
    ActivityLog,
    CoinPackage,
    SystemSetting,
    Task,
    TaskWork,
    Transaction,
    User,
    UserRole,
)

logger = logging.getLogger("raxnet.database")

_engine = None
_session_factory = None

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"
BASELINE_REVISION = "001"


async def init_db(url: str = "sqlite+aiosqlite:///raxnet.db") -> None:
    """Open the engine, bring the schema to head and seed the startup rows."""
    global _engine, _session_factory
    is_sqlite = url.startswith("sqlite")
    connect_args = {"check_same_thread": False, "timeout": 30} if is_sqlite else {}
    _engine = create_async_engine(url, connect_args=connect_args, pool_pre_ping=True)
    _session_factory = sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)  # type: ignore[call-overload]

    async with _engine.begin() as conn:
        if is_sqlite:
            await conn.execute(text("PRAGMA journal_mode=WAL"))
            await conn.execute(text("PRAGMA foreign_keys=ON"))
        await conn.run_sync(migrate)

    await _ensure_admin_user()
    await _ensure_default_settings()


def _alembic_config(sync_conn) -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    # env.py picks this up instead of opening its own engine
    cfg.attributes["connection"] = sync_conn
    return cfg


def migrate(sync_conn) -> None:
    """Upgrade the schema on a sync connection.

    A database that already has our tables but no ``alembic_version`` was
    built by ``create_all``; it is stamped at the baseline before upgrading.
    """
    cfg = _alembic_config(sync_conn)
    tables = set(sqlalchemy.inspect(sync_conn).get_table_names())

    if "alembic_version" not in tables:
        if "users" in tables:
            logger.info("Untracked schema found, stamping baseline %s", BASELINE_REVISION)
            command.stamp(cfg, BASELINE_REVISION)
        else:
            logger.info("Empty database, creating schema")
        command.upgrade(cfg, "head")
        return

    current = MigrationContext.configure(sync_conn).get_current_revision()
    head = ScriptDirectory.from_config(cfg).get_current_head()
    if current == head:
        logger.debug("Schema is at head (%s)", head)
        return
    logger.info("Migrating schema %s -> %s", current or "(none)", head)
    command.upgrade(cfg, "head")


async def _ensure_admin_user() -> None:
    """Create the configured admin account if it doesn't exist."""
    assert _session_factory is not None
    if not settings.admin_email or not settings.admin_password:
        return

    from raxnet.auth import hash_password
    from raxnet.ids import user_id

    email = settings.admin_email.strip().lower()
    async with _session_factory() as session:
        result = await session.execute(select(User.id).where(User.email == email))
        if result.first():
            return
        session.add(
            User(
                id=user_id(),
                email=email,
                password_hash=hash_password(settings.admin_password),
                full_name=settings.admin_full_name,
                role=UserRole.admin,
                email_verified=True,
            )
        )
        await session.commit()
        logger.info("Created admin user %s", email)


async def _ensure_default_settings() -> None:
    assert _session_factory is not None
    from raxnet.services.system_settings import initialize_default_settings

    async with _session_factory() as session:
        await initialize_default_settings(session)


async def close_db() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    if _session_factory is None:
        raise RuntimeError("init_db() has not been called")
    async with _session_factory() as session:
        yield session


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Run a multi-step mutation as one unit: commit on success, roll back on any error."""
    try:
        yield session
        await session.commit()
    except BaseException:
        await session.rollback()
        raise
