"""Doctor availability profile model using SQLAlchemy Core."""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    MetaData,
    Table,
    Time,
    Uuid,
    text,
)

metadata = MetaData()

doctor_availability = Table(
    "doctor_availability",
    metadata,
    Column("doctor_id", Uuid, primary_key=True),
    # Lower-case weekday names, e.g. ["monday", "tuesday"]
    Column("available_days", JSON, nullable=False),
    Column("working_hours_start", Time, nullable=False),
    Column("working_hours_end", Time, nullable=False),
    Column("break_start", Time, nullable=True),
    Column("break_end", Time, nullable=True),
    Column("is_available", Boolean, nullable=False, server_default=text("true")),
    # Metadata
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    CheckConstraint(
        "working_hours_start < working_hours_end",
        name="doctor_availability_hours_check",
    ),
    CheckConstraint(
        "(break_start IS NULL AND break_end IS NULL) OR "
        "(break_start >= working_hours_start AND break_start < break_end "
        "AND break_end <= working_hours_end)",
        name="doctor_availability_break_check",
    ),
)
