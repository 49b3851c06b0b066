"""Task routes: creation, browsing and lifecycle."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from raxnet.api.helpers import client_ip, is_admin, require_self_or_admin, user_agent
from raxnet.auth import AdminUser, AuthUser
from raxnet.config import settings
from raxnet.content import parse_body, render_response
from raxnet.database import get_db_session
from raxnet.db_models import User
from raxnet.errors import NotFound
from raxnet.models import (
    CreateTaskRequest,
    ErrorResponse,
    TaskListResponse,
    TaskResponse,
    TaskStatsResponse,
    TaskWorkListResponse,
    UpdateTaskRequest,
)
from raxnet.rate_limit import limiter
from raxnet.services.activity_logs import (
    create_activity_log,
    log_admin_action,
    log_task_creation,
)
from raxnet.services.task_works import get_task_works_by_task
from raxnet.services.tasks import (
    cancel_task,
    create_task,
    get_task_by_id,
    get_task_stats,
    get_tasks,
    get_user_tasks,
    pause_task,
    resume_task,
    update_task,
)

router = APIRouter()


async def _owned_task(session, task_id: str, user: User) -> dict:
    task = await get_task_by_id(session, task_id)
    if not task:
        raise NotFound("Task not found")
    require_self_or_admin(user, task["creator_id"], "task")
    return task


async def _log_task_action(
    session, request: Request, user: User, task: dict, action: str
) -> None:
    if is_admin(user) and task["creator_id"] != user.id:
        await log_admin_action(
            session, user.id, action, "task", task["id"], ip_address=client_ip(request)
        )
    else:
        await create_activity_log(
            session,
            user_id=user.id,
            action=action,
            resource_type="task",
            resource_id=task["id"],
            ip_address=client_ip(request),
            user_agent=user_agent(request),
        )


@router.post(
    "/v1/tasks",
    response_model=TaskResponse,
    status_code=201,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        402: {"model": ErrorResponse},
    },
)
@limiter.limit(settings.rate_limit_write)
async def post_task(request: Request, user: User = AuthUser, session=Depends(get_db_session)):
    """Create a task. The full allocation (target x price) is debited up front."""
    body = await parse_body(request)
    try:
        req = CreateTaskRequest(**body)
    except ValidationError:
        return render_response(request, {"error": "Invalid request body"}, status_code=400)

    task = await create_task(
        session,
        user.id,
        req.platform,
        req.interaction_type,
        req.target_url,
        req.target_interactions,
        req.coins_per_interaction,
        requires_verification=req.requires_verification,
    )
    await log_task_creation(session, user.id, task["id"], client_ip(request))
    return render_response(
        request,
        task,
        status_code=201,
        headers={"X-Task-Id": task["id"], "X-Status": task["status"]},
    )


@router.get("/v1/tasks", response_model=TaskListResponse)
@limiter.limit(settings.rate_limit_read)
async def list_tasks(
    request: Request,
    user: User = AuthUser,
    session=Depends(get_db_session),
    platform: str | None = None,
    interaction_type: str | None = None,
    status: str | None = None,
):
    tasks = await get_tasks(
        session, platform=platform, interaction_type=interaction_type, status=status
    )
    return render_response(request, {"tasks": tasks, "total": len(tasks)})


@router.get("/v1/tasks/mine", response_model=TaskListResponse)
@limiter.limit(settings.rate_limit_read)
async def my_tasks(request: Request, user: User = AuthUser, session=Depends(get_db_session)):
    tasks = await get_user_tasks(session, user.id)
    return render_response(request, {"tasks": tasks, "total": len(tasks)})


@router.get(
    "/v1/tasks/stats", response_model=TaskStatsResponse, responses={403: {"model": ErrorResponse}}
)
@limiter.limit(settings.rate_limit_admin)
async def task_stats(request: Request, admin: User = AdminUser, session=Depends(get_db_session)):
    return render_response(request, await get_task_stats(session))


@router.get(
    "/v1/tasks/{task_id}", response_model=TaskResponse, responses={404: {"model": ErrorResponse}}
)
@limiter.limit(settings.rate_limit_read)
async def get_task(
    request: Request, task_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    task = await get_task_by_id(session, task_id)
    if not task:
        raise NotFound("Task not found")
    return render_response(request, task)


@router.patch(
    "/v1/tasks/{task_id}",
    response_model=TaskResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_write)
async def patch_task(
    request: Request, task_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    """Change a task's status (pause, resume or cancel). Allocation fields are immutable."""
    task = await _owned_task(session, task_id, user)
    body = await parse_body(request)
    try:
        req = UpdateTaskRequest(**body)
    except ValidationError:
        return render_response(request, {"error": "Invalid request body"}, status_code=400)

    updated = await update_task(session, task_id, req.status)
    await _log_task_action(session, request, user, task, f"set_task_{req.status.value}")
    return render_response(request, updated)


@router.post(
    "/v1/tasks/{task_id}/pause",
    response_model=TaskResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_write)
async def pause(
    request: Request, task_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    task = await _owned_task(session, task_id, user)
    updated = await pause_task(session, task_id)
    await _log_task_action(session, request, user, task, "pause_task")
    return render_response(request, updated)


@router.post(
    "/v1/tasks/{task_id}/resume",
    response_model=TaskResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_write)
async def resume(
    request: Request, task_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    task = await _owned_task(session, task_id, user)
    updated = await resume_task(session, task_id)
    await _log_task_action(session, request, user, task, "resume_task")
    return render_response(request, updated)


@router.post(
    "/v1/tasks/{task_id}/cancel",
    response_model=TaskResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_write)
async def cancel(
    request: Request, task_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    """Cancel a task and refund the unused allocation to its creator."""
    task = await _owned_task(session, task_id, user)
    updated = await cancel_task(session, task_id)
    await _log_task_action(session, request, user, task, "cancel_task")
    return render_response(request, updated)


@router.get(
    "/v1/tasks/{task_id}/works",
    response_model=TaskWorkListResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_read)
async def task_works_for_task(
    request: Request, task_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    await _owned_task(session, task_id, user)
    works = await get_task_works_by_task(session, task_id)
    return render_response(request, {"task_works": works, "total": len(works)})
