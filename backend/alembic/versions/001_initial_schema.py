"""Initial schema: users, time sessions, leave ledger, audit log

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("first_name", sa.String(255), nullable=False),
        sa.Column("last_name", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(50), nullable=False, server_default="employee"),
        sa.Column("manager_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("department", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_manager_id", "users", ["manager_id"])

    # Time sessions
    op.create_table(
        "time_sessions",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("user_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("date", sa.String(10), nullable=False),
        sa.Column("clock_in", sa.DateTime(timezone=True), nullable=False),
        sa.Column("clock_out", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_work_minutes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_break_minutes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("device_type", sa.String(20), nullable=False, server_default="web"),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("is_overtime", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("late_clock_in", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("early_clock_out", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_time_sessions_user_id", "time_sessions", ["user_id"])
    op.create_index("ix_time_sessions_status", "time_sessions", ["status"])
    op.create_index(
        "uq_time_sessions_user_date", "time_sessions", ["user_id", "date"], unique=True
    )
    op.create_index(
        "uq_time_sessions_active_user",
        "time_sessions",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    # Breaks
    op.create_table(
        "session_breaks",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "session_id",
            sa.Uuid,
            sa.ForeignKey("time_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("break_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("break_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_minutes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("reason", sa.String(255), nullable=False, server_default="Unspecified"),
    )
    op.create_index("ix_session_breaks_session_id", "session_breaks", ["session_id"])
    op.create_index(
        "uq_session_breaks_open",
        "session_breaks",
        ["session_id"],
        unique=True,
        postgresql_where=sa.text("break_end IS NULL"),
        sqlite_where=sa.text("break_end IS NULL"),
    )

    # Leave types
    op.create_table(
        "leave_types",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("code", sa.String(20), unique=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("annual_quota", sa.Integer, nullable=False, server_default="0"),
        sa.Column("carry_forward", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("requires_approval", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    # Leave balances (minutes)
    op.create_table(
        "leave_balances",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("user_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("leave_type_id", sa.Uuid, sa.ForeignKey("leave_types.id"), nullable=False),
        sa.Column("total_allocated", sa.Integer, nullable=False, server_default="0"),
        sa.Column("used", sa.Integer, nullable=False, server_default="0"),
        sa.UniqueConstraint(
            "user_id", "year", "leave_type_id", name="uq_leave_balances_user_year_type"
        ),
    )
    op.create_index("ix_leave_balances_user_id", "leave_balances", ["user_id"])
    op.create_index("ix_leave_balances_year", "leave_balances", ["year"])
    op.create_index("ix_leave_balances_leave_type_id", "leave_balances", ["leave_type_id"])

    # Leave requests
    op.create_table(
        "leave_requests",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("user_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("leave_type_id", sa.Uuid, sa.ForeignKey("leave_types.id"), nullable=False),
        sa.Column("start_date", sa.String(10), nullable=False),
        sa.Column("end_date", sa.String(10), nullable=False),
        sa.Column("duration", sa.String(20), nullable=False),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("manager_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("manager_comment", sa.Text, nullable=True),
        sa.Column("debited_minutes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_leave_requests_user_id", "leave_requests", ["user_id"])
    op.create_index("ix_leave_requests_leave_type_id", "leave_requests", ["leave_type_id"])
    op.create_index("ix_leave_requests_status", "leave_requests", ["status"])
    op.create_index(
        "ix_leave_requests_user_range", "leave_requests", ["user_id", "start_date", "end_date"]
    )

    op.create_table(
        "leave_request_cc",
        sa.Column(
            "leave_request_id",
            sa.Uuid,
            sa.ForeignKey("leave_requests.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("user_id", sa.Uuid, sa.ForeignKey("users.id"), primary_key=True),
    )

    # Attachments
    op.create_table(
        "leave_attachments",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "leave_request_id",
            sa.Uuid,
            sa.ForeignKey("leave_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("url", sa.String(1000), nullable=False),
        sa.Column("filename", sa.String(500), nullable=True),
        sa.Column("mime_type", sa.String(255), nullable=True),
        sa.Column("size", sa.Integer, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_leave_attachments_leave_request_id", "leave_attachments", ["leave_request_id"]
    )

    # Audit log
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("actor_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("affected_user_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("entity", sa.String(100), nullable=False),
        sa.Column("entity_id", sa.Uuid, nullable=False),
        sa.Column("old_values", sa.JSON, nullable=True),
        sa.Column("new_values", sa.JSON, nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_affected_user_id", "audit_logs", ["affected_user_id"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("leave_attachments")
    op.drop_table("leave_request_cc")
    op.drop_table("leave_requests")
    op.drop_table("leave_balances")
    op.drop_table("leave_types")
    op.drop_table("session_breaks")
    op.drop_table("time_sessions")
    op.drop_table("users")
