"""Tests for appointment event dispatch."""

import json
from datetime import date, datetime, time
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from httpx import AsyncClient

from clinic_scheduler.config import settings
from clinic_scheduler.dependencies import get_dispatcher
from clinic_scheduler.main import app
from clinic_scheduler.schemas.appointments import AppointmentCreate, AppointmentResponse
from clinic_scheduler.services import notification_service
from clinic_scheduler.services.notification_service import (
    AppointmentEvent,
    LoggingNotificationDispatcher,
    RedisNotificationDispatcher,
    build_envelope,
    get_notification_dispatcher,
    notify,
)


def appointment_row(**overrides) -> dict:
    row = {
        "id": uuid4(),
        "patient_id": uuid4(),
        "doctor_id": uuid4(),
        "date": date(2026, 3, 3),
        "time": time(10, 0),
        "status": "scheduled",
        "priority": "normal",
        "reason": "Persistent cough",
        "created_at": datetime(2026, 3, 2, 8, 0),
    }
    row.update(overrides)
    return row


def redis_client(receivers: int = 1) -> AsyncMock:
    client = AsyncMock()
    client.publish.return_value = receivers
    return client


# ============================================================================
# Envelope Tests
# ============================================================================


def test_envelope_is_json_ready() -> None:
    row = appointment_row(doctor_id=None, status="pending")

    envelope = build_envelope(AppointmentEvent.CREATED, row, {"reason": "walk-in"})

    assert envelope["event"] == "appointment.created"
    assert envelope["appointment"] == {
        "id": str(row["id"]),
        "patient_id": str(row["patient_id"]),
        "doctor_id": None,
        "date": "2026-03-03",
        "time": "10:00",
        "status": "pending",
        "priority": "normal",
    }
    assert envelope["context"] == {"reason": "walk-in"}
    json.dumps(envelope)


# ============================================================================
# Dispatcher Tests
# ============================================================================


@pytest.mark.asyncio
async def test_logging_dispatcher_writes_event() -> None:
    dispatcher = LoggingNotificationDispatcher()

    await dispatcher.dispatch(AppointmentEvent.CREATED, appointment_row(), notify_staff=False)


@pytest.mark.asyncio
async def test_logging_dispatcher_log_fields(monkeypatch) -> None:
    logger = MagicMock()
    monkeypatch.setattr(notification_service, "logger", logger)
    row = appointment_row()

    await LoggingNotificationDispatcher().dispatch(AppointmentEvent.CONFIRMED, row)

    logger.info.assert_called_once()
    args, kwargs = logger.info.call_args
    assert args == ("appointment_event",)
    assert "event" not in kwargs
    assert kwargs["event_type"] == "appointment.confirmed"
    assert kwargs["appointment"]["id"] == str(row["id"])


@pytest.mark.asyncio
async def test_redis_dispatcher_publishes_envelope() -> None:
    client = redis_client(receivers=2)
    dispatcher = RedisNotificationDispatcher(client, channel="clinic:test-events")
    row = appointment_row()

    await dispatcher.dispatch(AppointmentEvent.RESCHEDULED, row, previous_time="09:00")

    client.publish.assert_awaited_once()
    channel, payload = client.publish.await_args.args
    assert channel == "clinic:test-events"
    published = json.loads(payload)
    assert published["event"] == "appointment.rescheduled"
    assert published["appointment"]["id"] == str(row["id"])
    assert published["context"] == {"previous_time": "09:00"}


@pytest.mark.asyncio
async def test_notify_swallows_dispatcher_failure() -> None:
    dispatcher = AsyncMock()
    dispatcher.dispatch.side_effect = RuntimeError("push gateway down")

    await notify(dispatcher, AppointmentEvent.CANCELLED, appointment_row(), notify_staff=True)

    dispatcher.dispatch.assert_awaited_once()


@pytest.mark.asyncio
async def test_notify_swallows_redis_failure() -> None:
    client = redis_client()
    client.publish.side_effect = ConnectionError("redis unreachable")

    await notify(RedisNotificationDispatcher(client), AppointmentEvent.COMPLETED, appointment_row())

    client.publish.assert_awaited_once()


def test_dispatcher_follows_backend_setting(monkeypatch) -> None:
    assert isinstance(get_notification_dispatcher(), LoggingNotificationDispatcher)

    client = redis_client()
    monkeypatch.setattr(settings, "notification_backend", "redis")
    monkeypatch.setattr(notification_service, "get_redis_client", lambda: client)

    dispatcher = get_notification_dispatcher()

    assert isinstance(dispatcher, RedisNotificationDispatcher)
    assert dispatcher.redis is client
    assert dispatcher.channel == settings.notification_channel


# ============================================================================
# Lifecycle Dispatch Tests
# ============================================================================


@pytest.mark.asyncio
async def test_cancel_publishes_notify_staff(make_service, patient_id, doctor_id) -> None:
    client = redis_client()
    service = make_service(dispatcher=RedisNotificationDispatcher(client, channel="clinic:test-events"))
    created = await service.create_appointment(
        patient_id,
        AppointmentCreate(doctor_id=doctor_id, date=date(2026, 3, 3), time=time(10, 0), reason="Checkup"),
    )
    assert isinstance(created, AppointmentResponse), created

    cancelled = await service.cancel_appointment(created.id, "Feeling better", notify_staff=True)

    assert isinstance(cancelled, AppointmentResponse), cancelled
    events = [json.loads(call.args[1]) for call in client.publish.await_args_list]
    assert [event["event"] for event in events] == ["appointment.created", "appointment.cancelled"]
    assert events[1]["appointment"]["status"] == "cancelled"
    assert events[1]["context"] == {"reason": "Feeling better", "notify_staff": True}


@pytest.mark.asyncio
async def test_lifecycle_with_default_dispatcher(
    client: AsyncClient, patient_headers: dict, doctor_id
) -> None:
    app.dependency_overrides[get_dispatcher] = LoggingNotificationDispatcher

    created = await client.post(
        "/api/v1/appointments",
        json={"doctor_id": str(doctor_id), "date": "2026-03-03", "time": "10:00", "reason": "Checkup"},
        headers=patient_headers,
    )
    assert created.status_code == 201

    cancelled = await client.put(
        f"/api/v1/appointments/{created.json()['id']}/cancel",
        json={"reason": "Exam moved", "notify_staff": True},
        headers=patient_headers,
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
