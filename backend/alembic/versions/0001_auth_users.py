"""create auth users table

Revision ID: 0001_auth_users
Revises:
Create Date: 2026-10-01 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_auth_users"
down_revision = None
branch_labels = None
depends_on = None


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
    _ensure_schema("auth")

    op.create_table(
        "users",
        sa.Column("Id", sa.String(length=36), primary_key=True),
        sa.Column("Username", sa.String(length=120), nullable=False),
        sa.Column("Email", sa.String(length=254)),
        sa.Column("FullName", sa.Unicode(length=120)),
        sa.Column("Role", sa.Integer(), nullable=False, server_default=sa.text("4")),
        sa.Column("Department", sa.Unicode(length=80)),
        sa.Column("IsActive", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "CreatedAt",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        schema="auth",
    )
    op.create_index("ix_auth_users_username", "users", ["Username"], unique=True, schema="auth")
    op.create_index("ix_auth_users_role", "users", ["Role"], schema="auth")
    op.create_index("ix_auth_users_department", "users", ["Department"], schema="auth")


def downgrade() -> None:
    op.drop_index("ix_auth_users_department", table_name="users", schema="auth")
    op.drop_index("ix_auth_users_role", table_name="users", schema="auth")
    op.drop_index("ix_auth_users_username", table_name="users", schema="auth")
    op.drop_table("users", schema="auth")
