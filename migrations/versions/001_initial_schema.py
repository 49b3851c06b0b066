"""Initial schema: users, tasks, task works, transactions, coin packages,
system settings and activity logs.

Revision ID: 001
Revises: None
Create Date: 2026-10-18

For databases created with SQLModel's create_all, this migration is
stamped (not executed).
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("email", sa.VARCHAR(), nullable=False),
        sa.Column("password_hash", sa.VARCHAR(), nullable=False),
        sa.Column("full_name", sa.VARCHAR(), nullable=False),
        sa.Column("role", sa.VARCHAR(length=5), nullable=False, server_default="user"),
        sa.Column("status", sa.VARCHAR(length=9), nullable=False, server_default="active"),
        sa.Column("coin_balance", sa.INTEGER(), nullable=False, server_default="0"),
        sa.Column("google_id", sa.VARCHAR(), nullable=True),
        sa.Column("facebook_id", sa.VARCHAR(), nullable=True),
        sa.Column("two_factor_enabled", sa.BOOLEAN(), nullable=False, server_default="0"),
        sa.Column("email_verified", sa.BOOLEAN(), nullable=False, server_default="0"),
        sa.Column("last_login_at", sa.DATETIME(), nullable=True),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.Column("updated_at", sa.DATETIME(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_status", "users", ["status"])
    op.create_index("ix_users_google_id", "users", ["google_id"])
    op.create_index("ix_users_facebook_id", "users", ["facebook_id"])
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "tasks",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("creator_id", sa.VARCHAR(), nullable=False),
        sa.Column("platform", sa.VARCHAR(length=9), nullable=False),
        sa.Column("interaction_type", sa.VARCHAR(length=9), nullable=False),
        sa.Column("target_url", sa.VARCHAR(), nullable=False),
        sa.Column("target_interactions", sa.INTEGER(), nullable=False),
        sa.Column("completed_interactions", sa.INTEGER(), nullable=False, server_default="0"),
        sa.Column("coins_per_interaction", sa.INTEGER(), nullable=False),
        sa.Column("total_coins_allocated", sa.INTEGER(), nullable=False),
        sa.Column("status", sa.VARCHAR(length=9), nullable=False, server_default="active"),
        sa.Column("requires_verification", sa.BOOLEAN(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.Column("updated_at", sa.DATETIME(), nullable=False),
        sa.Column("completed_at", sa.DATETIME(), nullable=True),
        sa.ForeignKeyConstraint(["creator_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tasks_creator_id", "tasks", ["creator_id"])
    op.create_index("ix_tasks_platform", "tasks", ["platform"])
    op.create_index("ix_tasks_status", "tasks", ["status"])
    op.create_index("ix_tasks_status_created_at", "tasks", ["status", "created_at"])

    op.create_table(
        "task_works",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("task_id", sa.VARCHAR(), nullable=False),
        sa.Column("worker_id", sa.VARCHAR(), nullable=False),
        sa.Column("status", sa.VARCHAR(length=8), nullable=False, server_default="pending"),
        sa.Column("coins_earned", sa.INTEGER(), nullable=False),
        sa.Column("completed_at", sa.DATETIME(), nullable=False),
        sa.Column("verified_at", sa.DATETIME(), nullable=True),
        sa.Column("verification_method", sa.VARCHAR(length=16), nullable=True),
        sa.Column("proof_screenshot", sa.VARCHAR(), nullable=True),
        sa.Column("admin_notes", sa.VARCHAR(), nullable=True),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"]),
        sa.ForeignKeyConstraint(["worker_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_task_works_task_id", "task_works", ["task_id"])
    op.create_index("ix_task_works_worker_id", "task_works", ["worker_id"])
    op.create_index("ix_task_works_status", "task_works", ["status"])
    op.create_index(
        "ix_task_works_task_worker", "task_works", ["task_id", "worker_id"], unique=True
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("user_id", sa.VARCHAR(), nullable=False),
        sa.Column("type", sa.VARCHAR(length=12), nullable=False),
        sa.Column("amount", sa.INTEGER(), nullable=False),
        sa.Column("status", sa.VARCHAR(length=9), nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.VARCHAR(length=8), nullable=True),
        sa.Column("external_transaction_id", sa.VARCHAR(), nullable=True),
        sa.Column("description", sa.VARCHAR(), nullable=False),
        sa.Column("metadata_json", sa.VARCHAR(), nullable=True),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.Column("processed_at", sa.DATETIME(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_transactions_user_id", "transactions", ["user_id"])
    op.create_index("ix_transactions_type", "transactions", ["type"])
    op.create_index("ix_transactions_status", "transactions", ["status"])
    op.create_index(
        "ix_transactions_external_transaction_id", "transactions", ["external_transaction_id"]
    )
    op.create_index("ix_transactions_user_created", "transactions", ["user_id", "created_at"])

    op.create_table(
        "coin_packages",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("name", sa.VARCHAR(), nullable=False),
        sa.Column("coin_amount", sa.INTEGER(), nullable=False),
        sa.Column("price_cents", sa.INTEGER(), nullable=False),
        sa.Column("bonus_coins", sa.INTEGER(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.BOOLEAN(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.Column("updated_at", sa.DATETIME(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_coin_packages_is_active", "coin_packages", ["is_active"])

    op.create_table(
        "system_settings",
        sa.Column("id", sa.INTEGER(), nullable=False),
        sa.Column("key", sa.VARCHAR(), nullable=False),
        sa.Column("value", sa.VARCHAR(), nullable=False),
        sa.Column("description", sa.VARCHAR(), nullable=True),
        sa.Column("updated_at", sa.DATETIME(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_system_settings_key", "system_settings", ["key"], unique=True)

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.INTEGER(), nullable=False),
        sa.Column("user_id", sa.VARCHAR(), nullable=True),
        sa.Column("action", sa.VARCHAR(), nullable=False),
        sa.Column("resource_type", sa.VARCHAR(), nullable=False),
        sa.Column("resource_id", sa.VARCHAR(), nullable=True),
        sa.Column("details", sa.VARCHAR(), nullable=True),
        sa.Column("ip_address", sa.VARCHAR(), nullable=False),
        sa.Column("user_agent", sa.VARCHAR(), nullable=True),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_activity_logs_user_id", "activity_logs", ["user_id"])
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])
    op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("activity_logs")
    op.drop_table("system_settings")
    op.drop_table("coin_packages")
    op.drop_table("transactions")
    op.drop_table("task_works")
    op.drop_table("tasks")
    op.drop_table("users")
