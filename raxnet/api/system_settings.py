"""System settings routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from raxnet.api.helpers import client_ip
from raxnet.auth import AdminUser, AuthUser
from raxnet.config import settings
from raxnet.content import parse_body, render_response
from raxnet.database import get_db_session
from raxnet.db_models import User
from raxnet.errors import NotFound
from raxnet.models import ErrorResponse, SystemSettingResponse, UpdateSystemSettingRequest
from raxnet.rate_limit import limiter
from raxnet.services.activity_logs import log_admin_action
from raxnet.services.system_settings import (
    get_coin_limits,
    get_commission_rate,
    get_system_setting,
    get_system_settings,
    initialize_default_settings,
    update_system_setting,
)

router = APIRouter()


@router.get("/v1/settings", responses={403: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_admin)
async def list_settings(request: Request, admin: User = AdminUser, session=Depends(get_db_session)):
    rows = await get_system_settings(session)
    return render_response(request, {"settings": rows, "total": len(rows)})


@router.get("/v1/settings/limits")
@limiter.limit(settings.rate_limit_read)
async def limits(request: Request, user: User = AuthUser, session=Depends(get_db_session)):
    """Coin limits and commission rate, for clients validating input up front."""
    data = await get_coin_limits(session)
    data["commission_rate"] = await get_commission_rate(session)
    return render_response(request, data)


@router.post("/v1/settings/initialize", responses={403: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_admin)
async def initialize(request: Request, admin: User = AdminUser, session=Depends(get_db_session)):
    rows = await initialize_default_settings(session)
    await log_admin_action(
        session, admin.id, "initialize_settings", "system_setting", ip_address=client_ip(request)
    )
    return render_response(request, {"settings": rows, "total": len(rows)})


@router.get(
    "/v1/settings/{key}",
    response_model=SystemSettingResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_admin)
async def get_setting(
    request: Request, key: str, admin: User = AdminUser, session=Depends(get_db_session)
):
    row = await get_system_setting(session, key)
    if row is None:
        raise NotFound(f"Setting '{key}' not found")
    return render_response(request, row)


@router.put(
    "/v1/settings/{key}",
    response_model=SystemSettingResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_admin)
async def put_setting(
    request: Request, key: str, admin: User = AdminUser, session=Depends(get_db_session)
):
    body = await parse_body(request, body_field="description")
    try:
        req = UpdateSystemSettingRequest(**body)
    except ValidationError:
        return render_response(request, {"error": "Invalid request body"}, status_code=400)

    row = await update_system_setting(session, key, req.value, req.description)
    await log_admin_action(
        session,
        admin.id,
        "update_setting",
        "system_setting",
        key,
        details=f"{key}={req.value}",
        ip_address=client_ip(request),
    )
    return render_response(request, row)
