"""Best-effort dispatch of appointment events to the notification collaborators."""

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol

import redis.asyncio as redis
import structlog

from clinic_scheduler.config import settings
from clinic_scheduler.core.redis_client import get_redis_client

logger = structlog.get_logger(__name__)


class AppointmentEvent(str, Enum):
    """Appointment lifecycle events published to other services."""

    CREATED = "appointment.created"
    ASSIGNED = "appointment.assigned"
    CONFIRMED = "appointment.confirmed"
    RESCHEDULED = "appointment.rescheduled"
    CANCELLED = "appointment.cancelled"
    COMPLETED = "appointment.completed"


class NotificationDispatcher(Protocol):
    async def dispatch(
        self,
        event: AppointmentEvent,
        appointment: dict[str, Any],
        **context: Any,
    ) -> None: ...


def build_envelope(
    event: AppointmentEvent,
    appointment: dict[str, Any],
    context: dict[str, Any],
) -> dict[str, Any]:
    """JSON-ready event payload shared by every dispatcher."""
    return {
        "event": event.value,
        "occurred_at": datetime.now(UTC).isoformat(),
        "appointment": {
            "id": str(appointment["id"]),
            "patient_id": str(appointment["patient_id"]),
            "doctor_id": str(appointment["doctor_id"]) if appointment.get("doctor_id") else None,
            "date": str(appointment["date"]),
            "time": appointment["time"].strftime("%H:%M"),
            "status": appointment["status"],
            "priority": appointment["priority"],
        },
        "context": context,
    }


class LoggingNotificationDispatcher:
    """Writes events to the structured log only."""

    async def dispatch(
        self,
        event: AppointmentEvent,
        appointment: dict[str, Any],
        **context: Any,
    ) -> None:
        envelope = build_envelope(event, appointment, context)
        logger.info(
            "appointment_event",
            event_type=envelope["event"],
            appointment=envelope["appointment"],
            context=envelope["context"],
        )


class RedisNotificationDispatcher:
    """Publishes events on a Redis pub/sub channel for push and e-mail workers."""

    def __init__(self, redis_client: redis.Redis, channel: str | None = None):
        """Initialize dispatcher with Redis client and channel name."""
        self.redis = redis_client
        self.channel = channel or settings.notification_channel

    async def dispatch(
        self,
        event: AppointmentEvent,
        appointment: dict[str, Any],
        **context: Any,
    ) -> None:
        envelope = build_envelope(event, appointment, context)
        receivers = await self.redis.publish(self.channel, json.dumps(envelope, default=str))
        logger.debug(
            "appointment_event_published",
            event_type=event.value,
            channel=self.channel,
            receivers=receivers,
        )


async def notify(
    dispatcher: NotificationDispatcher,
    event: AppointmentEvent,
    appointment: dict[str, Any],
    **context: Any,
) -> None:
    """
    Dispatch an event without letting delivery problems reach the caller.

    Args:
        dispatcher: Configured dispatcher
        event: Lifecycle event
        appointment: Appointment row as a mapping
        **context: Extra event fields
    """
    try:
        await dispatcher.dispatch(event, appointment, **context)
    except Exception as e:
        # Log error but don't fail the request
        logger.warning(
            "notification_dispatch_failed",
            event_type=event.value,
            appointment_id=str(appointment.get("id")),
            error=str(e),
        )


def get_notification_dispatcher() -> NotificationDispatcher:
    """Dispatcher for the configured backend."""
    if settings.notification_backend == "redis":
        return RedisNotificationDispatcher(get_redis_client())
    return LoggingNotificationDispatcher()
