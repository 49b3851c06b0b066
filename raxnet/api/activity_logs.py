"""Activity log routes."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request

from raxnet.auth import AdminUser, AuthUser
from raxnet.config import settings
from raxnet.content import render_response
from raxnet.database import get_db_session
from raxnet.db_models import User
from raxnet.models import ErrorResponse
from raxnet.rate_limit import limiter
from raxnet.services.activity_logs import get_activity_logs, get_user_activity_logs

router = APIRouter()


@router.get("/v1/activity-logs", responses={403: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_admin)
async def list_logs(
    request: Request,
    admin: User = AdminUser,
    session=Depends(get_db_session),
    user_id: str | None = None,
    action: str | None = None,
    resource_type: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    limit: int = Query(100, ge=1, le=1000),
):
    """Audit trail, newest first. Admin only."""
    logs = await get_activity_logs(
        session,
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
    )
    return render_response(request, {"activity_logs": logs, "total": len(logs)})


@router.get("/v1/activity-logs/mine")
@limiter.limit(settings.rate_limit_read)
async def my_logs(
    request: Request,
    user: User = AuthUser,
    session=Depends(get_db_session),
    limit: int = Query(50, ge=1, le=500),
):
    logs = await get_user_activity_logs(session, user.id, limit=limit)
    return render_response(request, {"activity_logs": logs, "total": len(logs)})
