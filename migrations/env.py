"""Alembic environment for RAXNET.

At app startup ``raxnet.database`` hands over its live connection through
``config.attributes["connection"]``; from the CLI a sync SQLite engine is
built from the app settings. Batch mode is always on because SQLite cannot
ALTER most column properties in place.
"""

from __future__ import annotations

import logging
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlmodel import SQLModel

# Imported to register every table on SQLModel.metadata
from raxnet.db_models import *  # noqa: F401, F403

logger = logging.getLogger("alembic.env")

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata


def _cli_url() -> str:
    url = config.get_main_option("sqlalchemy.url")
    if url:
        return url
    from raxnet.config import settings

    value = settings.database_url
    if "://" in value:
        return value.replace("+aiosqlite", "")
    return f"sqlite:///{value}"


def _run(connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of touching a database."""
    context.configure(
        url=_cli_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    injected = config.attributes.get("connection")
    if injected is not None:
        _run(injected)
        return

    config.set_main_option("sqlalchemy.url", _cli_url())
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        _run(connection)
    logger.info("Migrations applied via CLI engine")


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
