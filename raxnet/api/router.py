"""Mount all API routes."""

from fastapi import APIRouter

from raxnet.api.activity_logs import router as activity_logs_router
from raxnet.api.auth import router as auth_router
from raxnet.api.coin_packages import router as coin_packages_router
from raxnet.api.dashboard import router as dashboard_router
from raxnet.api.system_settings import router as settings_router
from raxnet.api.task_works import router as task_works_router
from raxnet.api.tasks import router as tasks_router
from raxnet.api.transactions import router as transactions_router
from raxnet.api.users import router as users_router

api_router = APIRouter()
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(users_router, tags=["users"])
api_router.include_router(transactions_router, tags=["transactions"])
api_router.include_router(tasks_router, tags=["tasks"])
api_router.include_router(task_works_router, tags=["task-works"])
api_router.include_router(coin_packages_router, tags=["coin-packages"])
api_router.include_router(settings_router, tags=["settings"])
api_router.include_router(activity_logs_router, tags=["activity-logs"])
api_router.include_router(dashboard_router, tags=["dashboard"])
