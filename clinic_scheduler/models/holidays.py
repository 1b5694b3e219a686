"""Holidays (blackout periods) model using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
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
    Uuid,
    text,
)

metadata = MetaData()

holidays = Table(
    "holidays",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("name", String(255), nullable=False),
    Column("description", Text, nullable=True),
    # Inclusive date range
    Column("start_date", Date, nullable=False),
    Column("end_date", Date, nullable=False),
    Column("type", String(50), nullable=False, server_default="holiday"),
    Column("affects_staff_type", String(50), nullable=False, server_default="all"),
    Column("blocks_appointments", Boolean, nullable=False, server_default=text("true")),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    Column("academic_year", Integer, nullable=True),
    # Metadata
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    CheckConstraint("start_date <= end_date", name="holidays_date_range_check"),
)

Index("idx_holidays_range", holidays.c.start_date, holidays.c.end_date)
