"""Health check endpoints."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from clinic_scheduler.config import settings
from clinic_scheduler.core.redis_client import check_redis_connection
from clinic_scheduler.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str
    timezone: str


class DetailedHealthResponse(HealthResponse):
    """Health check including the store and the lock/notification backend."""

    database: str
    redis: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """Liveness probe."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
        timezone=settings.clinic_timezone,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Detailed health check",
)
async def detailed_health_check() -> DetailedHealthResponse:
    """
    Readiness probe with database and Redis status.

    Redis is only checked when a Redis backend is configured for slot locks or
    notifications; otherwise it is reported as ``disabled``.

    Returns:
        Detailed health status including dependencies
    """
    db_healthy = await check_database_connection()

    redis_state = "disabled"
    redis_healthy = True
    if settings.uses_redis:
        redis_healthy = await check_redis_connection()
        redis_state = "healthy" if redis_healthy else "unhealthy"

    return DetailedHealthResponse(
        status="healthy" if db_healthy and redis_healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        timezone=settings.clinic_timezone,
        database="healthy" if db_healthy else "unhealthy",
        redis=redis_state,
    )


@router.get(
    "/ping",
    status_code=status.HTTP_200_OK,
    summary="Simple ping",
)
async def ping() -> dict[str, str]:
    return {"message": "pong"}
