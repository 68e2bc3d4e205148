"""create push token, preference, dispatch log and in-app notification tables

Revision ID: 0003_push_tables
Revises: 0002_maintenance_tables
Create Date: 2026-10-01 00:20:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0003_push_tables"
down_revision = "0002_maintenance_tables"
branch_labels = None
depends_on = None

NOW = sa.text("CURRENT_TIMESTAMP")


def _ensure_schema(name: str) -> None:
    dialect = op.get_bind().dialect.name
    if dialect == "mssql":
        op.execute(
            f"IF NOT EXISTS (SELECT * FROM sys.schemas WHERE name = '{name}') "
            f"EXEC('CREATE SCHEMA {name}')"
        )
    elif dialect == "postgresql":
        op.execute(f"CREATE SCHEMA IF NOT EXISTS {name}")


def upgrade() -> None:
    _ensure_schema("push")

    op.create_table(
        "device_tokens",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("UserId", sa.String(length=36), sa.ForeignKey("auth.users.Id"), nullable=False),
        sa.Column("Token", sa.String(length=512), nullable=False),
        sa.Column("DeviceType", sa.String(length=20), nullable=False, server_default="web"),
        sa.Column("DeviceInfoJson", sa.Text()),
        sa.Column("IsActive", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("LastError", sa.String(length=255)),
        sa.Column("LastUsedAt", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
        sa.Column("UpdatedAt", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
        sa.UniqueConstraint("UserId", "Token", name="uq_push_device_tokens_user_token"),
        schema="push",
    )
    op.create_index(
        "ix_push_device_tokens_user_active",
        "device_tokens",
        ["UserId", "IsActive"],
        schema="push",
    )
    op.create_index("ix_push_device_tokens_token", "device_tokens", ["Token"], schema="push")

    op.create_table(
        "push_settings",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("UserId", sa.String(length=36), sa.ForeignKey("auth.users.Id"), nullable=False, unique=True),
        sa.Column("Enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("Emergency", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("LongRepair", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("Completed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("PmSchedule", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("QuietHoursStart", sa.String(length=5)),
        sa.Column("QuietHoursEnd", sa.String(length=5)),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
        sa.Column("UpdatedAt", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
        schema="push",
    )

    op.create_table(
        "dispatch_logs",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("Type", sa.String(length=30), nullable=False, server_default="info"),
        sa.Column("Title", sa.UnicodeText(), nullable=False),
        sa.Column("Body", sa.UnicodeText()),
        sa.Column("DataJson", sa.Text()),
        sa.Column("TargetUsersJson", sa.Text()),
        sa.Column("TargetRolesJson", sa.Text()),
        sa.Column("TargetDepartmentsJson", sa.Text()),
        sa.Column("IsBroadcast", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("SuccessCount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("FailureCount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("ErrorsJson", sa.Text()),
        sa.Column("SentAt", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
        schema="push",
    )
    op.create_index("ix_push_dispatch_logs_type", "dispatch_logs", ["Type"], schema="push")
    op.create_index("ix_push_dispatch_logs_sent_at", "dispatch_logs", ["SentAt"], schema="push")

    op.create_table(
        "user_notifications",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("UserId", sa.String(length=36), sa.ForeignKey("auth.users.Id"), nullable=False),
        sa.Column("Type", sa.String(length=30), nullable=False, server_default="info"),
        sa.Column("Title", sa.UnicodeText(), nullable=False),
        sa.Column("Message", sa.UnicodeText()),
        sa.Column("DataJson", sa.Text()),
        sa.Column("SourceId", sa.String(length=120)),
        sa.Column("IsRead", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("ReadAt", sa.DateTime(timezone=True)),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
        schema="push",
    )
    op.create_index(
        "ix_push_user_notifications_user_read",
        "user_notifications",
        ["UserId", "IsRead", "CreatedAt"],
        schema="push",
    )
    op.create_index(
        "ix_push_user_notifications_source",
        "user_notifications",
        ["Type", "SourceId", "CreatedAt"],
        schema="push",
    )


def downgrade() -> None:
    op.drop_index("ix_push_user_notifications_source", table_name="user_notifications", schema="push")
    op.drop_index("ix_push_user_notifications_user_read", table_name="user_notifications", schema="push")
    op.drop_table("user_notifications", schema="push")
    op.drop_index("ix_push_dispatch_logs_sent_at", table_name="dispatch_logs", schema="push")
    op.drop_index("ix_push_dispatch_logs_type", table_name="dispatch_logs", schema="push")
    op.drop_table("dispatch_logs", schema="push")
    op.drop_table("push_settings", schema="push")
    op.drop_index("ix_push_device_tokens_token", table_name="device_tokens", schema="push")
    op.drop_index("ix_push_device_tokens_user_active", table_name="device_tokens", schema="push")
    op.drop_table("device_tokens", schema="push")
