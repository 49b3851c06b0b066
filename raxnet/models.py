"""Pydantic models for request/response schemas."""

from __future__ import annotations

from typing import Literal
from urllib.parse import urlparse

from pydantic import BaseModel, EmailStr, Field, field_validator

from raxnet.db_models import (
    InteractionType,
    PaymentMethod,
    Platform,
    TaskStatus,
    TransactionStatus,
    TransactionType,
    UserStatus,
)


def _validate_target_url(url: str) -> str:
    """Task targets must be absolute http(s) links to a post or profile."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise ValueError("target_url must use http or https scheme")
    if not parsed.hostname:
        raise ValueError("target_url must have a valid hostname")
    return url


# ---------------------------------------------------------------------------
# Auth & users
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    email: EmailStr
    # bcrypt only looks at the first 72 bytes
    password: str = Field(min_length=8, max_length=72)
    full_name: str = Field(min_length=1, max_length=200)
    google_id: str | None = Field(default=None, max_length=200)
    facebook_id: str | None = Field(default=None, max_length=200)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=72)


class VerifyTokenRequest(BaseModel):
    token: str = Field(min_length=1)


class UpdateUserRequest(BaseModel):
    email: EmailStr | None = None
    full_name: str | None = Field(default=None, min_length=1, max_length=200)
    two_factor_enabled: bool | None = None
    status: UserStatus | None = Field(default=None, description="Admin only")
    coin_balance: int | None = Field(default=None, ge=0, description="Admin only")


class UserResponse(BaseModel):
    id: str
    email: str
    full_name: str
    role: str
    status: str
    coin_balance: int
    google_id: str | None = None
    facebook_id: str | None = None
    two_factor_enabled: bool
    email_verified: bool
    last_login_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class AuthResponse(BaseModel):
    user: UserResponse
    token: str


class UserStatsResponse(BaseModel):
    total_tasks_created: int
    total_tasks_completed: int
    total_coins_earned: int
    total_coins_spent: int


# ---------------------------------------------------------------------------
# Tasks & task works
# ---------------------------------------------------------------------------


class CreateTaskRequest(BaseModel):
    platform: Platform
    interaction_type: InteractionType
    target_url: str = Field(min_length=1, max_length=2000)
    target_interactions: int = Field(ge=1, le=1_000_000)
    coins_per_interaction: int = Field(ge=1)
    requires_verification: bool = True

    @field_validator("target_url")
    @classmethod
    def check_target_url(cls, v: str) -> str:
        return _validate_target_url(v)


class UpdateTaskRequest(BaseModel):
    status: TaskStatus


class TaskResponse(BaseModel):
    id: str
    creator_id: str
    platform: str
    interaction_type: str
    target_url: str
    target_interactions: int
    completed_interactions: int
    coins_per_interaction: int
    total_coins_allocated: int
    status: str
    requires_verification: bool
    created_at: str | None = None
    updated_at: str | None = None
    completed_at: str | None = None


class TaskListResponse(BaseModel):
    tasks: list[TaskResponse]
    total: int


class TaskStatsResponse(BaseModel):
    total_active_tasks: int
    total_completed_tasks: int
    total_task_value: int
    tasks_by_platform: dict[str, int]


class CreateTaskWorkRequest(BaseModel):
    task_id: str = Field(min_length=1)
    proof_screenshot: str | None = Field(default=None, max_length=2000)


class VerifyTaskWorkRequest(BaseModel):
    verification_method: Literal["manual", "automatic", "api_automatic"] = "manual"
    admin_notes: str | None = Field(default=None, max_length=5000)


class RejectTaskWorkRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=5000)


class TaskWorkResponse(BaseModel):
    id: str
    task_id: str
    worker_id: str
    status: str
    coins_earned: int
    completed_at: str | None = None
    verified_at: str | None = None
    verification_method: str | None = None
    proof_screenshot: str | None = None
    admin_notes: str | None = None


class TaskWorkListResponse(BaseModel):
    task_works: list[TaskWorkResponse]
    total: int


# ---------------------------------------------------------------------------
# Transactions & coin packages
# ---------------------------------------------------------------------------


class CreateTransactionRequest(BaseModel):
    type: TransactionType
    amount: int
    payment_method: PaymentMethod | None = None
    description: str = Field(min_length=1, max_length=1000)
    metadata: dict | None = None


class UpdateTransactionRequest(BaseModel):
    status: TransactionStatus
    external_transaction_id: str | None = Field(default=None, max_length=200)


class TransactionResponse(BaseModel):
    id: str
    user_id: str
    type: str
    amount: int
    status: str
    payment_method: str | None = None
    external_transaction_id: str | None = None
    description: str
    metadata: dict | None = None
    created_at: str | None = None
    processed_at: str | None = None


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    total: int


class TransactionStatsResponse(BaseModel):
    total_topups: int
    total_withdrawals: int
    total_volume: int
    pending_transactions: int


class CreateCoinPackageRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    coin_amount: int = Field(ge=1, le=1_000_000_000)
    price: float = Field(
        gt=0, le=1_000_000, description="Price in major currency units, e.g. 9.99"
    )
    bonus_coins: int = Field(default=0, ge=0, le=1_000_000_000)


class UpdateCoinPackageRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    coin_amount: int | None = Field(default=None, ge=1, le=1_000_000_000)
    price: float | None = Field(default=None, gt=0, le=1_000_000)
    bonus_coins: int | None = Field(default=None, ge=0, le=1_000_000_000)
    is_active: bool | None = None


class PurchaseCoinPackageRequest(BaseModel):
    payment_method: PaymentMethod


class CoinPackageResponse(BaseModel):
    id: str
    name: str
    coin_amount: int
    price: float
    bonus_coins: int
    is_active: bool
    created_at: str | None = None
    updated_at: str | None = None


class PurchaseResponse(BaseModel):
    transaction: TransactionResponse
    package: CoinPackageResponse


# ---------------------------------------------------------------------------
# Settings, activity logs, dashboards
# ---------------------------------------------------------------------------


class UpdateSystemSettingRequest(BaseModel):
    value: str = Field(max_length=1000)
    description: str | None = Field(default=None, max_length=1000)


class SystemSettingResponse(BaseModel):
    id: int | None = None
    key: str
    value: str
    description: str | None = None
    updated_at: str | None = None


class ActivityLogResponse(BaseModel):
    id: int | None = None
    user_id: str | None = None
    action: str
    resource_type: str
    resource_id: str | None = None
    details: str | None = None
    ip_address: str
    user_agent: str | None = None
    created_at: str | None = None


class SystemHealthResponse(BaseModel):
    status: Literal["healthy", "warning", "critical"]
    checks: dict[str, bool]
    uptime: float
    version: str


class ErrorResponse(BaseModel):
    error: str
    code: str | None = None
