"""Task work routes: submission and verification."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from raxnet.api.helpers import client_ip, require_self_or_admin
from raxnet.auth import AdminUser, AuthUser
from raxnet.config import settings
from raxnet.content import parse_body, render_response
from raxnet.database import get_db_session
from raxnet.db_models import User
from raxnet.errors import NotFound
from raxnet.models import (
    CreateTaskWorkRequest,
    ErrorResponse,
    RejectTaskWorkRequest,
    TaskWorkListResponse,
    TaskWorkResponse,
    VerifyTaskWorkRequest,
)
from raxnet.rate_limit import limiter
from raxnet.services.activity_logs import log_admin_action, log_task_work
from raxnet.services.task_works import (
    auto_verify_task_work,
    create_task_work,
    get_pending_task_works,
    get_task_work_by_id,
    get_task_works_by_user,
    reject_task_work,
    verify_task_work,
)

router = APIRouter()


@router.post(
    "/v1/task-works",
    response_model=TaskWorkResponse,
    status_code=201,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
@limiter.limit(settings.rate_limit_write)
async def submit_work(request: Request, user: User = AuthUser, session=Depends(get_db_session)):
    """Report an interaction performed on someone else's task.

    Markdown bodies may carry the proof screenshot link as the body text.
    """
    body = await parse_body(request, body_field="proof_screenshot")
    try:
        req = CreateTaskWorkRequest(**body)
    except ValidationError:
        return render_response(request, {"error": "Invalid request body"}, status_code=400)

    work = await create_task_work(session, req.task_id, user.id, req.proof_screenshot)
    await log_task_work(session, user.id, work["id"], client_ip(request))
    return render_response(request, work, status_code=201)


@router.get("/v1/task-works/mine", response_model=TaskWorkListResponse)
@limiter.limit(settings.rate_limit_read)
async def my_works(request: Request, user: User = AuthUser, session=Depends(get_db_session)):
    works = await get_task_works_by_user(session, user.id)
    return render_response(request, {"task_works": works, "total": len(works)})


@router.get(
    "/v1/task-works/pending",
    response_model=TaskWorkListResponse,
    responses={403: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_admin)
async def pending_works(
    request: Request, admin: User = AdminUser, session=Depends(get_db_session)
):
    """Verification queue, oldest first. Admin only."""
    works = await get_pending_task_works(session)
    return render_response(request, {"task_works": works, "total": len(works)})


@router.get(
    "/v1/task-works/{work_id}",
    response_model=TaskWorkResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_read)
async def get_work(
    request: Request, work_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    work = await get_task_work_by_id(session, work_id)
    if not work:
        raise NotFound("Task work not found")
    require_self_or_admin(user, work["worker_id"], "task work")
    return render_response(request, work)


@router.post(
    "/v1/task-works/{work_id}/verify",
    response_model=TaskWorkResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_admin)
async def verify_work(
    request: Request, work_id: str, admin: User = AdminUser, session=Depends(get_db_session)
):
    """Approve a pending work: the worker is paid and the task's counter advances."""
    body = await parse_body(request, body_field="admin_notes")
    try:
        req = VerifyTaskWorkRequest(**body)
    except ValidationError:
        return render_response(request, {"error": "Invalid request body"}, status_code=400)

    work = await verify_task_work(session, work_id, req.verification_method, req.admin_notes)
    await log_admin_action(
        session,
        admin.id,
        "verify_task_work",
        "task_work",
        work_id,
        details=f"Verified ({req.verification_method}), paid {work['coins_earned']} coins",
        ip_address=client_ip(request),
    )
    return render_response(request, work)


@router.post(
    "/v1/task-works/{work_id}/reject",
    response_model=TaskWorkResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_admin)
async def reject_work(
    request: Request, work_id: str, admin: User = AdminUser, session=Depends(get_db_session)
):
    body = await parse_body(request, body_field="reason")
    try:
        req = RejectTaskWorkRequest(**body)
    except ValidationError:
        return render_response(request, {"error": "Invalid request body"}, status_code=400)

    work = await reject_task_work(session, work_id, req.reason)
    await log_admin_action(
        session,
        admin.id,
        "reject_task_work",
        "task_work",
        work_id,
        details=req.reason,
        ip_address=client_ip(request),
    )
    return render_response(request, work)


@router.post(
    "/v1/task-works/{work_id}/auto-verify",
    response_model=TaskWorkResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_admin)
async def auto_verify_work(
    request: Request, work_id: str, admin: User = AdminUser, session=Depends(get_db_session)
):
    """Check the interaction against the platform and verify it if confirmed."""
    work = await auto_verify_task_work(session, work_id)
    await log_admin_action(
        session,
        admin.id,
        "auto_verify_task_work",
        "task_work",
        work_id,
        ip_address=client_ip(request),
    )
    return render_response(request, work)
