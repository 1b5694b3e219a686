"""Database models."""

from sqlalchemy import MetaData

from clinic_scheduler.models.appointments import appointments
from clinic_scheduler.models.appointments import metadata as appointments_metadata
from clinic_scheduler.models.doctor_availability import doctor_availability
from clinic_scheduler.models.doctor_availability import metadata as availability_metadata
from clinic_scheduler.models.holidays import holidays
from clinic_scheduler.models.holidays import metadata as holidays_metadata

# Combined metadata for schema creation and migrations
metadata = MetaData()
for _source in (appointments_metadata, availability_metadata, holidays_metadata):
    for _table in _source.tables.values():
        _table.to_metadata(metadata)

__all__ = [
    "appointments",
    "doctor_availability",
    "holidays",
    "metadata",
]
