"""User profile and moderation routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from pydantic import ValidationError

from raxnet.api.helpers import client_ip, is_admin, require_self_or_admin
from raxnet.auth import AdminUser, AuthUser
from raxnet.config import settings
from raxnet.content import parse_body, render_response
from raxnet.database import get_db_session
from raxnet.db_models import User
from raxnet.errors import Forbidden, NotFound
from raxnet.models import ErrorResponse, UpdateUserRequest, UserResponse, UserStatsResponse
from raxnet.rate_limit import limiter
from raxnet.services.activity_logs import log_admin_action
from raxnet.services.users import (
    activate_user,
    block_user,
    get_user_by_id,
    get_user_stats,
    get_users,
    suspend_user,
    update_user,
)

router = APIRouter()


@router.get("/v1/users", responses={403: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_admin)
async def list_users(
    request: Request,
    admin: User = AdminUser,
    session=Depends(get_db_session),
    status: str | None = None,
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    """All accounts, newest first. Admin only."""
    users = await get_users(session, status=status, offset=offset, limit=limit)
    return render_response(request, {"users": users, "total": len(users)})


@router.get(
    "/v1/users/{user_id}",
    response_model=UserResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_read)
async def get_user(
    request: Request, user_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    require_self_or_admin(user, user_id, "account")
    found = await get_user_by_id(session, user_id)
    if not found:
        raise NotFound("User not found")
    return render_response(request, found)


@router.patch(
    "/v1/users/{user_id}",
    response_model=UserResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_write)
async def patch_user(
    request: Request, user_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    """Update profile fields. Only admins may change `status` or `coin_balance`."""
    require_self_or_admin(user, user_id, "account")
    body = await parse_body(request)
    try:
        req = UpdateUserRequest(**body)
    except ValidationError:
        return render_response(request, {"error": "Invalid request body"}, status_code=400)

    override = req.status is not None or req.coin_balance is not None
    if override and not is_admin(user):
        raise Forbidden("Only admins can change status or coin_balance")

    updated = await update_user(
        session,
        user_id,
        email=req.email,
        full_name=req.full_name,
        two_factor_enabled=req.two_factor_enabled,
        status=req.status,
        coin_balance=req.coin_balance,
    )
    if override:
        changes = req.model_dump(include={"status", "coin_balance"}, exclude_none=True, mode="json")
        await log_admin_action(
            session,
            user.id,
            "update_user",
            "user",
            user_id,
            details=f"Override {changes}",
            ip_address=client_ip(request),
        )
    return render_response(request, updated)


@router.get(
    "/v1/users/{user_id}/stats",
    response_model=UserStatsResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_read)
async def user_stats(
    request: Request, user_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    require_self_or_admin(user, user_id, "account")
    return render_response(request, await get_user_stats(session, user_id))


_MODERATION = {
    "block": block_user,
    "suspend": suspend_user,
    "activate": activate_user,
}


@router.post(
    "/v1/users/{user_id}/{action}",
    response_model=UserResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_admin)
async def moderate_user(
    request: Request,
    user_id: str,
    action: str,
    admin: User = AdminUser,
    session=Depends(get_db_session),
):
    """Block, suspend or re-activate an account. Admin only."""
    handler = _MODERATION.get(action)
    if handler is None:
        raise NotFound(f"Unknown user action '{action}'")
    if user_id == admin.id and action != "activate":
        raise Forbidden("Admins cannot lock themselves out")

    updated = await handler(session, user_id)
    await log_admin_action(
        session, admin.id, f"{action}_user", "user", user_id, ip_address=client_ip(request)
    )
    return render_response(request, updated)
