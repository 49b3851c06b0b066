"""Authentication: bcrypt password hashing and HS256 bearer tokens."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import bcrypt
from fastapi import Depends, Request
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from raxnet.config import settings
from raxnet.database import get_db_session
from raxnet.db_models import User, UserRole, UserStatus
from raxnet.errors import Forbidden, Unauthorized


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Malformed stored hash
        return False


def create_access_token(user: User) -> str:
    iat = datetime.now(UTC)
    exp = iat + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {
        "sub": user.id,
        "email": user.email,
        "role": user.role.value if isinstance(user.role, UserRole) else user.role,
        "iat": int(iat.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict:
    """Check signature and expiry; return the claims."""
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise Unauthorized(f"Invalid or expired token: {e}") from e
    if not claims.get("sub"):
        raise Unauthorized("Token has no subject")
    return claims


def ensure_active(user: User) -> None:
    if user.status != UserStatus.active:
        status = user.status.value if isinstance(user.status, UserStatus) else user.status
        raise Forbidden(f"Account is {status}")


async def get_current_user(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
) -> User:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        raise Unauthorized("Missing or invalid Authorization header")

    claims = decode_access_token(auth[7:])
    result = await session.execute(select(User).where(User.id == claims["sub"]))
    user = result.scalar_one_or_none()
    if not user:
        raise Unauthorized("User not found")

    ensure_active(user)
    return user


async def get_current_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.admin:
        raise Forbidden("Admin access required")
    return user


AuthUser = Depends(get_current_user)
AdminUser = Depends(get_current_admin)
