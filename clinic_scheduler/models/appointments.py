"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    Time,
    Uuid,
    text,
)

# Metadata for all tables
metadata = MetaData()

ACTIVE_STATUS_SQL = "status IN ('pending', 'scheduled', 'confirmed')"

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True),
    # Ownership / references
    Column("patient_id", Uuid, nullable=False),
    Column("doctor_id", Uuid, nullable=True),
    # Slot (clinic-local date and start time)
    Column("date", Date, nullable=False),
    Column("time", Time, nullable=False),
    Column("duration_minutes", Integer, nullable=False, server_default=text("30")),
    # Status management
    Column("status", String(20), nullable=False, server_default="scheduled"),
    Column("priority", String(20), nullable=False, server_default="normal"),
    Column("reason", Text, nullable=False),
    Column("cancellation_reason", Text, nullable=True),
    Column("reschedule_reason", Text, nullable=True),
    Column("completion_report", JSON, nullable=True),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Column("assigned_at", DateTime(timezone=True), nullable=True),
    Column("confirmed_at", DateTime(timezone=True), nullable=True),
    Column("rescheduled_at", DateTime(timezone=True), nullable=True),
    Column("cancelled_at", DateTime(timezone=True), nullable=True),
    Column("completed_at", DateTime(timezone=True), nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ('pending', 'scheduled', 'confirmed', 'completed', 'cancelled')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "priority IN ('normal', 'high', 'urgent')",
        name="appointments_priority_check",
    ),
    CheckConstraint(
        "status = 'pending' OR doctor_id IS NOT NULL",
        name="appointments_doctor_required_check",
    ),
)

# One active appointment per (doctor, date, time); the backstop for racing writers
Index(
    "uq_appointments_active_slot",
    appointments.c.doctor_id,
    appointments.c.date,
    appointments.c.time,
    unique=True,
    postgresql_where=text(f"{ACTIVE_STATUS_SQL} AND doctor_id IS NOT NULL"),
    sqlite_where=text(f"{ACTIVE_STATUS_SQL} AND doctor_id IS NOT NULL"),
)

# One active appointment per (patient, date)
Index(
    "uq_appointments_active_patient_day",
    appointments.c.patient_id,
    appointments.c.date,
    unique=True,
    postgresql_where=text(ACTIVE_STATUS_SQL),
    sqlite_where=text(ACTIVE_STATUS_SQL),
)

Index("idx_appointments_doctor_date", appointments.c.doctor_id, appointments.c.date)
Index("idx_appointments_status", appointments.c.status)
