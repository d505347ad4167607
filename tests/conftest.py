import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-tests-only")
os.environ.setdefault("LOG_FORMAT", "console")

from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from telehealth.config import settings
from telehealth.core.security import create_access_token
from telehealth.database import get_db
from telehealth.dependencies import get_clock
from telehealth.main import app
from telehealth.models import appointments, metadata, payments
from telehealth.schemas.auth import AuthenticatedUser, UserRole

# Test database URL - MUST be different from production.
# Defaults to an in-memory SQLite database.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

if not TEST_DATABASE_URL.startswith("sqlite") and settings.database_url == TEST_DATABASE_URL:
    raise RuntimeError("TEST_DATABASE_URL must not point at the application database")

if TEST_DATABASE_URL.startswith("postgresql://"):
    TEST_DATABASE_URL = TEST_DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")

if TEST_DATABASE_URL.startswith("sqlite"):
    # One shared connection so the in-memory schema survives across sessions
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
else:
    test_engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Three days before the 2025-06-10 appointment used throughout the tests
FIXED_NOW = datetime(2025, 6, 7, 9, 0, tzinfo=UTC)
APPOINTMENT_DATE = date(2025, 6, 10)


class FrozenClock:
    """Clock returning a settable instant."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


@pytest.fixture
def clock() -> FrozenClock:
    """Clock frozen at FIXED_NOW."""
    return FrozenClock(FIXED_NOW)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on a fresh schema."""
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    clock: FrozenClock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def _user(role: UserRole) -> AuthenticatedUser:
    return AuthenticatedUser(id=uuid4(), role=role)


@pytest.fixture
def patient() -> AuthenticatedUser:
    """A patient identity."""
    return _user(UserRole.PATIENT)


@pytest.fixture
def other_patient() -> AuthenticatedUser:
    """A second, unrelated patient."""
    return _user(UserRole.PATIENT)


@pytest.fixture
def doctor() -> AuthenticatedUser:
    """A doctor identity."""
    return _user(UserRole.DOCTOR)


@pytest.fixture
def admin() -> AuthenticatedUser:
    """An administrator identity."""
    return _user(UserRole.ADMIN)


def headers_for(user: AuthenticatedUser) -> dict:
    """Bearer headers for a user."""
    token = create_access_token(user.id, user.role, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def patient_headers(patient: AuthenticatedUser) -> dict:
    """Authentication headers for the patient."""
    return headers_for(patient)


@pytest.fixture
def other_patient_headers(other_patient: AuthenticatedUser) -> dict:
    """Authentication headers for the unrelated patient."""
    return headers_for(other_patient)


@pytest.fixture
def doctor_headers(doctor: AuthenticatedUser) -> dict:
    """Authentication headers for the doctor."""
    return headers_for(doctor)


@pytest.fixture
def admin_headers(admin: AuthenticatedUser) -> dict:
    """Authentication headers for the administrator."""
    return headers_for(admin)


@pytest.fixture
def sample_appointment_data(doctor: AuthenticatedUser) -> dict:
    """Sample booking payload for testing."""
    return {
        "doctor_id": str(doctor.id),
        "availability_date": APPOINTMENT_DATE.isoformat(),
        "slot_start": "10:00",
        "slot_end": "10:30",
        "duration_minutes": 30,
        "price": "100.00",
        "case_details": "Persistent headache",
    }


@pytest.fixture
def make_appointment(
    db_session: AsyncSession,
    patient: AuthenticatedUser,
    doctor: AuthenticatedUser,
) -> Callable[..., Awaitable[UUID]]:
    """Factory inserting an appointment row directly."""

    async def factory(**overrides) -> UUID:
        values = {
            "id": uuid4(),
            "patient_id": patient.id,
            "doctor_id": doctor.id,
            "availability_date": APPOINTMENT_DATE,
            "slot_start": "10:00",
            "slot_end": "10:30",
            "duration_minutes": 30,
            "price": Decimal("100.00"),
            "status": "confirmed",
            "payment_status": "completed",
            "created_at": FIXED_NOW - timedelta(days=5),
            "updated_at": FIXED_NOW - timedelta(days=5),
        }
        values.update(overrides)
        await db_session.execute(insert(appointments).values(**values))
        await db_session.commit()
        return values["id"]

    return factory


@pytest.fixture
def make_payment(
    db_session: AsyncSession,
    patient: AuthenticatedUser,
) -> Callable[..., Awaitable[UUID]]:
    """Factory inserting a payment row directly."""

    async def factory(appointment_id: UUID | None, **overrides) -> UUID:
        values = {
            "id": uuid4(),
            "appointment_id": appointment_id,
            "patient_id": patient.id,
            "amount": Decimal("100.00"),
            "method": "card",
            "status": "completed",
            "transaction_id": f"txn_{uuid4().hex[:8]}",
            "is_refund": False,
            "payment_date": FIXED_NOW - timedelta(days=5),
            "created_at": FIXED_NOW - timedelta(days=5),
            "updated_at": FIXED_NOW - timedelta(days=5),
        }
        values.update(overrides)
        await db_session.execute(insert(payments).values(**values))
        await db_session.commit()
        return values["id"]

    return factory


@pytest_asyncio.fixture
async def paid_appointment(make_appointment, make_payment) -> UUID:
    """A confirmed appointment on 2025-06-10 with a captured 100.00 payment."""
    appointment_id = await make_appointment()
    await make_payment(appointment_id, transaction_id="txn_paid")
    return appointment_id
