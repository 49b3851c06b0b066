"""Request helpers shared by the route modules."""

from __future__ import annotations

from fastapi import Request

from raxnet.db_models import User, UserRole
from raxnet.errors import Forbidden


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def user_agent(request: Request) -> str | None:
    return request.headers.get("user-agent")


def is_admin(user: User) -> bool:
    return user.role == UserRole.admin


def require_self_or_admin(user: User, owner_id: str, what: str = "resource") -> None:
    if user.id != owner_id and not is_admin(user):
        raise Forbidden(f"Not your {what}")
