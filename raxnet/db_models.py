"""SQLModel table definitions for RAXNET."""

from __future__ import annotations

import enum
from datetime import UTC, datetime

from sqlalchemy import Index
from sqlmodel import Field, SQLModel


class UserRole(str, enum.Enum):
    user = "user"
    admin = "admin"


class UserStatus(str, enum.Enum):
    active = "active"
    suspended = "suspended"
    blocked = "blocked"


class Platform(str, enum.Enum):
    facebook = "facebook"
    instagram = "instagram"
    tiktok = "tiktok"
    youtube = "youtube"
    twitter = "twitter"


class InteractionType(str, enum.Enum):
    like = "like"
    follow = "follow"
    subscribe = "subscribe"
    view = "view"
    comment = "comment"


class TaskStatus(str, enum.Enum):
    active = "active"
    completed = "completed"
    paused = "paused"
    cancelled = "cancelled"


class TaskWorkStatus(str, enum.Enum):
    pending = "pending"
    verified = "verified"
    rejected = "rejected"


class VerificationMethod(str, enum.Enum):
    manual = "manual"
    automatic = "automatic"
    api_automatic = "api_automatic"
    manual_rejection = "manual_rejection"
    task_cancelled = "task_cancelled"
    target_reached = "target_reached"


class TransactionType(str, enum.Enum):
    topup = "topup"
    withdrawal = "withdrawal"
    task_payment = "task_payment"
    task_earning = "task_earning"
    system_fee = "system_fee"
    bonus = "bonus"


class TransactionStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"


class PaymentMethod(str, enum.Enum):
    midtrans = "midtrans"
    xendit = "xendit"
    duitku = "duitku"
    manual = "manual"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(primary_key=True)
    email: str = Field(unique=True, index=True)
    password_hash: str
    full_name: str
    role: UserRole = Field(default=UserRole.user)
    status: UserStatus = Field(default=UserStatus.active, index=True)
    coin_balance: int = Field(default=0, ge=0)
    google_id: str | None = Field(default=None, index=True)
    facebook_id: str | None = Field(default=None, index=True)
    two_factor_enabled: bool = Field(default=False)
    email_verified: bool = Field(default=False)
    last_login_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow, index=True)
    updated_at: datetime = Field(default_factory=_utcnow)


class Task(SQLModel, table=True):
    __tablename__ = "tasks"
    __table_args__ = (Index("ix_tasks_status_created_at", "status", "created_at"),)

    id: str = Field(primary_key=True)
    creator_id: str = Field(foreign_key="users.id", index=True)
    platform: Platform = Field(index=True)
    interaction_type: InteractionType
    target_url: str
    target_interactions: int
    completed_interactions: int = Field(default=0)
    coins_per_interaction: int
    total_coins_allocated: int
    status: TaskStatus = Field(default=TaskStatus.active, index=True)
    requires_verification: bool = Field(default=True)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = None


class TaskWork(SQLModel, table=True):
    __tablename__ = "task_works"
    __table_args__ = (
        Index("ix_task_works_task_worker", "task_id", "worker_id", unique=True),
    )

    id: str = Field(primary_key=True)
    task_id: str = Field(foreign_key="tasks.id", index=True)
    worker_id: str = Field(foreign_key="users.id", index=True)
    status: TaskWorkStatus = Field(default=TaskWorkStatus.pending, index=True)
    coins_earned: int
    completed_at: datetime = Field(default_factory=_utcnow)
    verified_at: datetime | None = None
    verification_method: VerificationMethod | None = None
    proof_screenshot: str | None = None
    admin_notes: str | None = None


class Transaction(SQLModel, table=True):
    __tablename__ = "transactions"
    __table_args__ = (Index("ix_transactions_user_created", "user_id", "created_at"),)

    id: str = Field(primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    type: TransactionType = Field(index=True)
    amount: int
    status: TransactionStatus = Field(default=TransactionStatus.pending, index=True)
    payment_method: PaymentMethod | None = None
    external_transaction_id: str | None = Field(default=None, index=True)
    description: str
    metadata_json: str | None = None  # opaque JSON blob, exposed as "metadata"
    created_at: datetime = Field(default_factory=_utcnow)
    processed_at: datetime | None = None


class CoinPackage(SQLModel, table=True):
    __tablename__ = "coin_packages"

    id: str = Field(primary_key=True)
    name: str
    coin_amount: int
    price_cents: int
    bonus_coins: int = Field(default=0)
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class SystemSetting(SQLModel, table=True):
    __tablename__ = "system_settings"

    id: int | None = Field(default=None, primary_key=True)
    key: str = Field(unique=True, index=True)
    value: str
    description: str | None = None
    updated_at: datetime = Field(default_factory=_utcnow)


class ActivityLog(SQLModel, table=True):
    __tablename__ = "activity_logs"

    id: int | None = Field(default=None, primary_key=True)
    user_id: str | None = Field(default=None, foreign_key="users.id", index=True)
    action: str = Field(index=True)
    resource_type: str
    resource_id: str | None = None
    details: str | None = None
    ip_address: str
    user_agent: str | None = None
    created_at: datetime = Field(default_factory=_utcnow, index=True)
