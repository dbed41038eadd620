import os
from collections.abc import AsyncGenerator
from datetime import UTC, date, datetime, timedelta
from unittest.mock import MagicMock
from uuid import UUID, uuid4

# Settings are read at import time; pin the ones tests depend on first.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SWEEP_INTERVAL_SECONDS"] = "0"
os.environ["CLINIC_TIMEZONE"] = "America/El_Salvador"
os.environ["LOG_FORMAT"] = "console"

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Anything not pinned above may come from a local .env
load_dotenv()

from dental_clinic.core.calendar import next_bookable_date
from dental_clinic.core.redis_client import get_redis_client
from dental_clinic.core.security import Principal, Role, create_access_token
from dental_clinic.database import get_db
from dental_clinic.main import app
from dental_clinic.models import appointments, metadata, patients, staff

# In-memory SQLite shared by every connection of the test engine
test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    echo=False,
    poolclass=StaticPool,
)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session over freshly created tables."""
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest.fixture
def redis_mock() -> MagicMock:
    """Redis stand-in behaving like an empty cache."""
    client = MagicMock()
    client.get.return_value = None
    return client


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, redis_mock: MagicMock) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_client] = lambda: redis_mock

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def make_patient(
    db: AsyncSession,
    first_names: str = "Ana María",
    last_names: str = "López",
    **values,
) -> dict:
    """Insert a patient row and return it."""
    now = datetime.now(UTC)
    row = {
        "id": uuid4(),
        "firebase_uid": f"firebase_{uuid4().hex}",
        "email": f"{uuid4().hex[:8]}@example.com",
        "first_names": first_names,
        "last_names": last_names,
        "is_active": True,
        "created_at": now,
        "updated_at": now,
        **values,
    }
    await db.execute(insert(patients).values(**row))
    await db.commit()
    return row


async def make_appointment(
    db: AsyncSession,
    patient: dict,
    day: date,
    time: str = "08:00",
    clinic: str = "santa-tecla",
    status: str = "scheduled",
    **values,
) -> dict:
    """Insert an appointment row directly, bypassing the booking rules."""
    now = datetime.now(UTC)
    row = {
        "id": uuid4(),
        "patient_id": patient["id"],
        "patient_name": f"{patient['first_names']} {patient['last_names']}",
        "date": day,
        "time": time,
        "clinic": clinic,
        "reason": "Limpieza dental",
        "status": status,
        "created_by_staff": False,
        "created_at": now,
        "updated_at": now,
        **values,
    }
    await db.execute(insert(appointments).values(**row))
    await db.commit()
    return row


def auth_headers_for(user_id: UUID, role: Role) -> dict:
    token = create_access_token(
        data={"sub": str(user_id), "role": role.value},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def test_patient(db_session: AsyncSession) -> dict:
    return await make_patient(db_session)


@pytest_asyncio.fixture
async def other_patient(db_session: AsyncSession) -> dict:
    return await make_patient(db_session, first_names="Carlos", last_names="Hernández")


@pytest_asyncio.fixture
async def test_doctor(db_session: AsyncSession) -> dict:
    row = {
        "id": uuid4(),
        "firebase_uid": f"firebase_{uuid4().hex}",
        "email": "doctora@example.com",
        "first_names": "Lucía",
        "last_names": "Martínez",
        "role": "doctor",
        "is_active": True,
    }
    await db_session.execute(insert(staff).values(**row))
    await db_session.commit()
    return row


@pytest.fixture
def patient_principal(test_patient: dict) -> Principal:
    return Principal(id=test_patient["id"], role=Role.PATIENT)


@pytest.fixture
def doctor_principal(test_doctor: dict) -> Principal:
    return Principal(id=test_doctor["id"], role=Role.DOCTOR)


@pytest.fixture
def auth_headers(test_patient: dict) -> dict:
    """Authentication headers for the test patient."""
    return auth_headers_for(test_patient["id"], Role.PATIENT)


@pytest.fixture
def staff_headers(test_doctor: dict) -> dict:
    return auth_headers_for(test_doctor["id"], Role.DOCTOR)


@pytest.fixture
def admin_headers() -> dict:
    return auth_headers_for(uuid4(), Role.ADMIN)


@pytest.fixture
def booking_day() -> date:
    """A date the clinics accept bookings for, relative to the real clock."""
    return next_bookable_date()


@pytest.fixture
def sample_appointment_data(booking_day: date) -> dict:
    return {
        "date": booking_day.isoformat(),
        "time": "9:00 AM",
        "clinic": "soyapango",
        "reason": "Control de rutina",
        "notes": "Primera visita",
    }
