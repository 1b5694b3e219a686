"""Database configuration and connection management."""

import asyncio
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from clinic_scheduler.config import settings

logger = structlog.get_logger(__name__)

# Convert sync PostgreSQL URL to async
DATABASE_URL = settings.database_url.replace("postgresql://", "postgresql+asyncpg://")


def _engine_options(url: str) -> dict[str, Any]:
    """Pool and driver options for the configured backend."""
    if url.startswith("postgresql+asyncpg://"):
        return {
            "pool_size": 10,
            "max_overflow": 20,
            "pool_recycle": 3600,
            "connect_args": {
                "timeout": settings.store_timeout_seconds,
                "command_timeout": settings.store_timeout_seconds,
                "server_settings": {
                    "application_name": settings.app_name,
                },
            },
        }
    return {}


# Create async engine with connection pooling
engine: AsyncEngine = create_async_engine(
    DATABASE_URL,
    echo=settings.debug,
    pool_pre_ping=True,
    **_engine_options(DATABASE_URL),
)

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


class StoreUnavailable(Exception):
    """The durable store did not answer within the configured bound."""


@asynccontextmanager
async def store_unit(
    session: AsyncSession,
    timeout: float | None = None,
) -> AsyncIterator[AsyncSession]:
    """
    Run one unit of work against the store with a bounded timeout.

    Anything left uncommitted when the block exits abnormally is rolled back,
    so an abandoned or failed unit never leaves a partial reservation behind.

    Raises:
        StoreUnavailable: On timeout or a connection-level driver failure
    """
    try:
        async with asyncio.timeout(timeout or settings.store_timeout_seconds):
            yield session
    except (TimeoutError, OperationalError) as e:
        await _safe_rollback(session)
        logger.warning("store_unavailable", error=str(e))
        raise StoreUnavailable(str(e)) from e
    except DBAPIError as e:
        await _safe_rollback(session)
        if e.connection_invalidated:
            logger.warning("store_connection_invalidated", error=str(e))
            raise StoreUnavailable(str(e)) from e
        raise
    except BaseException:
        await _safe_rollback(session)
        raise


async def _safe_rollback(session: AsyncSession) -> None:
    try:
        await session.rollback()
    except Exception as e:
        logger.warning("store_rollback_failed", error=str(e))


async def check_database_connection() -> bool:
    """Check if database connection is healthy."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
