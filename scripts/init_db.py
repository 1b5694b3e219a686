"""Script to create the scheduling schema directly, without Alembic."""

import asyncio

from clinic_scheduler.database import engine
from clinic_scheduler.models import metadata


async def init_db() -> None:
    """Create the appointments, doctor_availability and holidays tables."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print(f"✓ Database initialized with tables: {', '.join(sorted(metadata.tables))}")


if __name__ == "__main__":
    asyncio.run(init_db())
