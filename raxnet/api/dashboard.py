"""Dashboard and health routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from raxnet.auth import AdminUser, AuthUser
from raxnet.config import settings
from raxnet.content import render_response
from raxnet.database import get_db_session
from raxnet.db_models import User
from raxnet.models import ErrorResponse, SystemHealthResponse
from raxnet.rate_limit import limiter
from raxnet.services.dashboard import get_admin_dashboard, get_system_health, get_user_dashboard

router = APIRouter()


@router.get("/v1/dashboard", responses={401: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_read)
async def user_dashboard(request: Request, user: User = AuthUser, session=Depends(get_db_session)):
    """Balance, stats, recent transactions and recent activity for the caller."""
    return render_response(request, await get_user_dashboard(session, user.id))


@router.get("/v1/admin/dashboard", responses={403: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_admin)
async def admin_dashboard(
    request: Request, admin: User = AdminUser, session=Depends(get_db_session)
):
    return render_response(request, await get_admin_dashboard(session))


@router.get("/v1/health", response_model=SystemHealthResponse)
async def system_health(request: Request, session=Depends(get_db_session)):
    health = await get_system_health(session)
    status_code = 503 if health["status"] == "critical" else 200
    return render_response(request, health, status_code=status_code)
