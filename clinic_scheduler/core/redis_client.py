"""Redis client configuration and the per-slot reservation lock."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as redis
import structlog
from redis.exceptions import LockError, RedisError

from clinic_scheduler.config import settings

logger = structlog.get_logger(__name__)

# Global Redis client instance
_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """
    Get or create Redis client instance.

    Returns:
        Redis client instance
    """
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=settings.store_timeout_seconds,
            socket_keepalive=True,
            health_check_interval=30,
        )

    return _redis_client


async def check_redis_connection() -> bool:
    """
    Check if Redis connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        client = get_redis_client()
        await client.ping()
        return True
    except Exception:
        return False


async def close_redis_connection() -> None:
    """Close Redis connection."""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


class SlotLockUnavailable(Exception):
    """The slot lock could not be acquired within the wait bound."""


class SlotLockManager:
    """
    Per-key mutual exclusion for the reservation check-and-insert.

    With no Redis client the manager is a pass-through and the database's
    partial unique indexes are the only serialization. The indexes stay the
    backstop either way.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        timeout: float | None = None,
        wait: float | None = None,
    ):
        """Initialize lock manager with an optional Redis client."""
        self.redis = redis_client
        self.timeout = timeout or settings.slot_lock_timeout_seconds
        self.wait = wait or settings.slot_lock_wait_seconds

    @asynccontextmanager
    async def hold(self, *keys: str) -> AsyncIterator[None]:
        """
        Hold the locks for all keys for the duration of the block.

        Keys are acquired in sorted order so two callers needing the same pair
        cannot deadlock.

        Raises:
            SlotLockUnavailable: If any lock is not acquired in time
        """
        if self.redis is None:
            yield
            return

        acquired = []
        try:
            for key in sorted(set(keys)):
                lock = self.redis.lock(key, timeout=self.timeout, blocking_timeout=self.wait)
                try:
                    ok = await lock.acquire()
                except RedisError as e:
                    raise SlotLockUnavailable(str(e)) from e
                if not ok:
                    logger.info("slot_lock_wait_exceeded", key=key)
                    raise SlotLockUnavailable(key)
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                try:
                    await lock.release()
                except (LockError, RedisError) as e:
                    # Lock expired under us; the unique index still guards the write
                    logger.warning("slot_lock_release_failed", error=str(e))


def get_slot_lock_manager() -> SlotLockManager:
    """Lock manager for the configured backend."""
    if settings.slot_lock_backend == "redis":
        return SlotLockManager(get_redis_client())
    return SlotLockManager()
