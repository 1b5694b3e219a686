"""Create scheduling tables - appointments, doctor_availability, holidays.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_STATUS_SQL = "status IN ('pending', 'scheduled', 'confirmed')"


def upgrade() -> None:
    """Upgrade database schema."""
    # Create appointments table
    op.create_table(
        "appointments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("patient_id", sa.Uuid(), nullable=False),
        sa.Column("doctor_id", sa.Uuid(), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), server_default=sa.text("30"), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="scheduled", nullable=False),
        sa.Column("priority", sa.String(length=20), server_default="normal", nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("reschedule_reason", sa.Text(), nullable=True),
        sa.Column("completion_report", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rescheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'scheduled', 'confirmed', 'completed', 'cancelled')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "priority IN ('normal', 'high', 'urgent')",
            name="appointments_priority_check",
        ),
        sa.CheckConstraint(
            "status = 'pending' OR doctor_id IS NOT NULL",
            name="appointments_doctor_required_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # Partial unique indexes guarding slot and patient-day exclusivity
    op.create_index(
        "uq_appointments_active_slot",
        "appointments",
        ["doctor_id", "date", "time"],
        unique=True,
        postgresql_where=sa.text(f"{ACTIVE_STATUS_SQL} AND doctor_id IS NOT NULL"),
        sqlite_where=sa.text(f"{ACTIVE_STATUS_SQL} AND doctor_id IS NOT NULL"),
    )
    op.create_index(
        "uq_appointments_active_patient_day",
        "appointments",
        ["patient_id", "date"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_STATUS_SQL),
        sqlite_where=sa.text(ACTIVE_STATUS_SQL),
    )
    op.create_index("idx_appointments_doctor_date", "appointments", ["doctor_id", "date"])
    op.create_index("idx_appointments_status", "appointments", ["status"])

    # Create doctor_availability table
    op.create_table(
        "doctor_availability",
        sa.Column("doctor_id", sa.Uuid(), nullable=False),
        sa.Column("available_days", sa.JSON(), nullable=False),
        sa.Column("working_hours_start", sa.Time(), nullable=False),
        sa.Column("working_hours_end", sa.Time(), nullable=False),
        sa.Column("break_start", sa.Time(), nullable=True),
        sa.Column("break_end", sa.Time(), nullable=True),
        sa.Column("is_available", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "working_hours_start < working_hours_end",
            name="doctor_availability_hours_check",
        ),
        sa.CheckConstraint(
            "(break_start IS NULL AND break_end IS NULL) OR "
            "(break_start >= working_hours_start AND break_start < break_end "
            "AND break_end <= working_hours_end)",
            name="doctor_availability_break_check",
        ),
        sa.PrimaryKeyConstraint("doctor_id"),
    )

    # Create holidays table
    op.create_table(
        "holidays",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("type", sa.String(length=50), server_default="holiday", nullable=False),
        sa.Column("affects_staff_type", sa.String(length=50), server_default="all", nullable=False),
        sa.Column(
            "blocks_appointments", sa.Boolean(), server_default=sa.text("true"), nullable=False
        ),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("academic_year", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("start_date <= end_date", name="holidays_date_range_check"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_holidays_range", "holidays", ["start_date", "end_date"])


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("idx_holidays_range", table_name="holidays")
    op.drop_table("holidays")

    op.drop_table("doctor_availability")

    op.drop_index("idx_appointments_status", table_name="appointments")
    op.drop_index("idx_appointments_doctor_date", table_name="appointments")
    op.drop_index("uq_appointments_active_patient_day", table_name="appointments")
    op.drop_index("uq_appointments_active_slot", table_name="appointments")
    op.drop_table("appointments")
