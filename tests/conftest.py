"""Test fixtures with in-memory SQLite via SQLModel."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from raxnet.auth import create_access_token, hash_password
from raxnet.database import get_db_session
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
from raxnet.ids import user_id as make_user_id
from raxnet.main import app
from raxnet.rate_limit import limiter
from raxnet.services import ledger

limiter.enabled = False

PASSWORD = "correct-horse-battery"


@pytest.fixture
async def db():
    engine = create_async_engine(
        "sqlite+aiosqlite://", echo=False, connect_args={"check_same_thread": False}
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)  # type: ignore[call-overload]

    async def override_get_db_session():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db_session

    yield factory

    app.dependency_overrides.clear()
    await engine.dispose()


@pytest.fixture
async def client(db):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def make_user(
    db,
    email: str,
    *,
    role: UserRole = UserRole.user,
    balance: int = 0,
) -> dict:
    """Helper: insert a user directly, return {"id", "email", "token"}."""
    async with db() as session:
        user = User(
            id=make_user_id(),
            email=email,
            password_hash=hash_password(PASSWORD),
            full_name=email.split("@")[0],
            role=role,
        )
        session.add(user)
        await session.commit()
        if balance:
            await ledger.credit(session, user.id, balance)
            await session.commit()
        return {"id": user.id, "email": email, "token": create_access_token(user)}


async def balance_of(db, user_id: str) -> int:
    async with db() as session:
        return await ledger.get_balance(session, user_id)


async def register_user(
    client: AsyncClient, email: str = "someone@example.com", full_name: str = "Someone"
) -> dict:
    """Helper: register through the API, return {"user", "token"}."""
    resp = await client.post(
        "/v1/auth/register",
        json={"email": email, "password": PASSWORD, "full_name": full_name},
        headers={"Accept": "application/json"},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}", "Accept": "application/json"}


@pytest.fixture
async def admin(db):
    return await make_user(db, "admin@raxnet.test", role=UserRole.admin)


@pytest.fixture
async def creator(db):
    """A user with enough coins to post tasks."""
    return await make_user(db, "creator@example.com", balance=1000)


@pytest.fixture
async def worker(db):
    return await make_user(db, "worker@example.com")
