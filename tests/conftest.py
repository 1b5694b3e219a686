import os
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, time, timedelta
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

# Settings are read at import time; point them at throwaway values first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("LOG_FORMAT", "console")

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from clinic_scheduler.core.redis_client import SlotLockManager
from clinic_scheduler.core.security import Role, create_access_token
from clinic_scheduler.database import get_db
from clinic_scheduler.dependencies import get_clock, get_dispatcher, get_lock_manager
from clinic_scheduler.main import app
from clinic_scheduler.models import metadata
from clinic_scheduler.scheduling.assignment import FirstAvailable
from clinic_scheduler.scheduling.clock import FixedClock
from clinic_scheduler.schemas.availability import AvailabilityProfileUpdate
from clinic_scheduler.services.appointment_service import AppointmentService
from clinic_scheduler.services.doctor_service import DoctorAvailabilityService

load_dotenv()

# Monday 2 March 2026, 08:00 clinic time
NOW = datetime(2026, 3, 2, 8, 0)


@pytest_asyncio.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite database per test, so separate sessions can race."""
    url = os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'scheduler.db'}"
    engine = create_async_engine(url, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def dispatcher() -> AsyncMock:
    """Notification dispatcher double; inspect ``dispatch.await_args_list``."""
    return AsyncMock()


@pytest_asyncio.fixture
async def make_service(
    session_factory: async_sessionmaker[AsyncSession],
    clock: FixedClock,
    dispatcher: AsyncMock,
) -> AsyncGenerator[Callable[..., AppointmentService], None]:
    """Build an appointment service on its own session, like one request would."""
    sessions: list[AsyncSession] = []

    def factory(**kwargs) -> AppointmentService:
        session = session_factory()
        sessions.append(session)
        kwargs.setdefault("dispatcher", dispatcher)
        kwargs.setdefault("strategy", FirstAvailable())
        return AppointmentService(session, clock, **kwargs)

    yield factory

    for session in sessions:
        await session.close()


@pytest.fixture
def service(db_session: AsyncSession, clock: FixedClock, dispatcher: AsyncMock) -> AppointmentService:
    return AppointmentService(db_session, clock, dispatcher=dispatcher, strategy=FirstAvailable())


@pytest.fixture
def patient_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_patient_id() -> UUID:
    return uuid4()


@pytest.fixture
def doctor_id() -> UUID:
    return UUID("00000000-0000-0000-0000-00000000000a")


@pytest.fixture
def other_doctor_id() -> UUID:
    return UUID("00000000-0000-0000-0000-00000000000b")


@pytest_asyncio.fixture
async def doctor_profiles(
    db_session: AsyncSession,
    clock: FixedClock,
    doctor_id: UUID,
    other_doctor_id: UUID,
) -> list[UUID]:
    """Two doctors working Monday to Friday 09:00-17:00 with a 12:00-13:00 break."""
    doctors = DoctorAvailabilityService(db_session, clock)
    profile = AvailabilityProfileUpdate(
        available_days=["monday", "tuesday", "wednesday", "thursday", "friday"],
        working_hours_start=time(9, 0),
        working_hours_end=time(17, 0),
        break_start=time(12, 0),
        break_end=time(13, 0),
    )
    for doctor in (doctor_id, other_doctor_id):
        await doctors.upsert_profile(doctor, profile)
    return [doctor_id, other_doctor_id]


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    clock: FixedClock,
    dispatcher: AsyncMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_lock_manager] = lambda: SlotLockManager()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def auth_headers(user_id: UUID, role: Role) -> dict:
    """Authorization header carrying a portal access token."""
    token = create_access_token(
        data={"sub": str(user_id), "role": role.value},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def patient_headers(patient_id: UUID) -> dict:
    return auth_headers(patient_id, Role.STUDENT)


@pytest.fixture
def other_patient_headers(other_patient_id: UUID) -> dict:
    return auth_headers(other_patient_id, Role.ACADEMIC_STAFF)


@pytest.fixture
def doctor_headers(doctor_id: UUID) -> dict:
    return auth_headers(doctor_id, Role.DOCTOR)


@pytest.fixture
def other_doctor_headers(other_doctor_id: UUID) -> dict:
    return auth_headers(other_doctor_id, Role.DOCTOR)


@pytest.fixture
def staff_headers() -> dict:
    return auth_headers(uuid4(), Role.CLINICAL_STAFF)


@pytest.fixture
def admin_headers() -> dict:
    return auth_headers(uuid4(), Role.ADMIN)
