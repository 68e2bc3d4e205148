"""create maintenance read models used by notification jobs

Revision ID: 0002_maintenance_tables
Revises: 0001_auth_users
Create Date: 2026-10-01 00:10:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_maintenance_tables"
down_revision = "0001_auth_users"
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
    _ensure_schema("maintenance")

    op.create_table(
        "equipments",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("EquipmentCode", sa.String(length=40), nullable=False),
        sa.Column("EquipmentName", sa.Unicode(length=160), nullable=False),
        sa.Column("EquipmentNameKo", sa.Unicode(length=160)),
        sa.Column("Building", sa.Unicode(length=80)),
        sa.Column("IsActive", sa.Boolean(), nullable=False, server_default=sa.true()),
        schema="maintenance",
    )
    op.create_index(
        "ix_maintenance_equipments_code",
        "equipments",
        ["EquipmentCode"],
        unique=True,
        schema="maintenance",
    )

    op.create_table(
        "maintenance_records",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("EquipmentId", sa.Integer(), sa.ForeignKey("maintenance.equipments.Id"), nullable=False),
        sa.Column("TechnicianId", sa.String(length=36), sa.ForeignKey("auth.users.Id")),
        sa.Column("RepairTypeCode", sa.String(length=10)),
        sa.Column("Status", sa.String(length=20), nullable=False, server_default="in_progress"),
        sa.Column("Symptom", sa.Unicode(length=400)),
        sa.Column(
            "StartTime",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("EndTime", sa.DateTime(timezone=True)),
        sa.Column("Rating", sa.Integer()),
        schema="maintenance",
    )
    op.create_index(
        "ix_maintenance_records_status_start",
        "maintenance_records",
        ["Status", "StartTime"],
        schema="maintenance",
    )
    op.create_index(
        "ix_maintenance_records_equipment",
        "maintenance_records",
        ["EquipmentId"],
        schema="maintenance",
    )

    op.create_table(
        "pm_templates",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("Name", sa.Unicode(length=160), nullable=False),
        sa.Column("NameKo", sa.Unicode(length=160)),
        sa.Column("NameVi", sa.Unicode(length=160)),
        schema="maintenance",
    )

    op.create_table(
        "pm_schedules",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("EquipmentId", sa.Integer(), sa.ForeignKey("maintenance.equipments.Id"), nullable=False),
        sa.Column("TemplateId", sa.Integer(), sa.ForeignKey("maintenance.pm_templates.Id"), nullable=False),
        sa.Column("ScheduledDate", sa.Date(), nullable=False),
        sa.Column("AssignedTechnicianId", sa.String(length=36), sa.ForeignKey("auth.users.Id")),
        sa.Column("Priority", sa.String(length=20), nullable=False, server_default="normal"),
        sa.Column("Status", sa.String(length=20), nullable=False, server_default="scheduled"),
        sa.Column("NotifiedToday", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("Notified1Day", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("Notified3Days", sa.Boolean(), nullable=False, server_default=sa.false()),
        schema="maintenance",
    )
    op.create_index(
        "ix_pm_schedules_status_date",
        "pm_schedules",
        ["Status", "ScheduledDate"],
        schema="maintenance",
    )


def downgrade() -> None:
    op.drop_index("ix_pm_schedules_status_date", table_name="pm_schedules", schema="maintenance")
    op.drop_table("pm_schedules", schema="maintenance")
    op.drop_table("pm_templates", schema="maintenance")
    op.drop_index("ix_maintenance_records_equipment", table_name="maintenance_records", schema="maintenance")
    op.drop_index("ix_maintenance_records_status_start", table_name="maintenance_records", schema="maintenance")
    op.drop_table("maintenance_records", schema="maintenance")
    op.drop_index("ix_maintenance_equipments_code", table_name="equipments", schema="maintenance")
    op.drop_table("equipments", schema="maintenance")
