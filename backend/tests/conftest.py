"""
Pytest configuration and fixtures.
"""
import os

# Settings are read at import time; configure before importing the app
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ["RATE_LIMIT_ENABLED"] = "false"

from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator, Optional
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from fleet_planner.core.database import Base, get_db
from fleet_planner.core.security import ActorContext, create_access_token, get_password_hash
from fleet_planner.main import app
from fleet_planner.models import Delivery, DeliveryStatus, User, UserRole, Vehicle, VehicleStatus


# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite://"

TEST_PASSWORD = "correct-horse-battery"
_TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


@pytest.fixture
def test_password() -> str:
    return TEST_PASSWORD


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create async engine for tests."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests."""
    async_session = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with async_session() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with overridden dependencies."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================
# Users and tokens
# ============================================================

@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory creating a committed user with the given role."""

    async def _make(role: UserRole, email: Optional[str] = None, is_active: bool = True) -> User:
        user = User(
            email=email or f"{role.value}-{uuid4().hex[:8]}@fleetco.com",
            hashed_password=_TEST_PASSWORD_HASH,
            full_name=f"Test {role.value}",
            role=role,
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest_asyncio.fixture
async def admin_user(make_user) -> User:
    return await make_user(UserRole.ADMIN)


@pytest_asyncio.fixture
async def planner_user(make_user) -> User:
    return await make_user(UserRole.TRIP_PLANNER)


@pytest_asyncio.fixture
async def creator_user(make_user) -> User:
    return await make_user(UserRole.DELIVERY_CREATOR)


@pytest_asyncio.fixture
async def viewer_user(make_user) -> User:
    return await make_user(UserRole.VIEWER)


@pytest.fixture
def auth_headers():
    """Build a bearer header for a user."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}

    return _headers


@pytest.fixture
def planner(planner_user: User) -> ActorContext:
    """Actor context of a trip planner, as handed to the engine."""
    return ActorContext.from_user(planner_user)


# ============================================================
# Fleet data
# ============================================================

@pytest.fixture
def make_vehicle(db_session: AsyncSession):
    """Factory creating a committed vehicle."""

    async def _make(
        capacity_weight: float = 1000.0,
        capacity_volume: float = 10.0,
        status: VehicleStatus = VehicleStatus.AVAILABLE,
    ) -> Vehicle:
        vehicle = Vehicle(
            name="Isuzu NPR",
            license_plate=f"01A{uuid4().hex[:3].upper()}AA",
            capacity_weight=capacity_weight,
            capacity_volume=capacity_volume,
            status=status,
        )
        db_session.add(vehicle)
        await db_session.commit()
        return vehicle

    return _make


@pytest_asyncio.fixture
async def vehicle(make_vehicle) -> Vehicle:
    return await make_vehicle()


@pytest.fixture
def make_delivery(db_session: AsyncSession):
    """Factory creating a committed delivery."""

    async def _make(
        weight: float = 10.0,
        volume: float = 0.1,
        status: DeliveryStatus = DeliveryStatus.PENDING,
    ) -> Delivery:
        delivery = Delivery(
            customer_name=f"Customer {uuid4().hex[:6]}",
            customer_phone="+998901234567",
            delivery_address="Amir Temur street, 15",
            scheduled_date=date.today() + timedelta(days=1),
            weight=weight,
            volume=volume,
            status=status,
        )
        db_session.add(delivery)
        await db_session.commit()
        return delivery

    return _make


@pytest.fixture
def trip_start() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0) + timedelta(days=1)


@pytest.fixture
def sample_delivery_data():
    """Sample delivery payload for API tests."""
    return {
        "customer_name": "Korzinka #12",
        "customer_phone": "+998901234567",
        "delivery_address": "Navoiy street, 42",
        "latitude": 41.311081,
        "longitude": 69.279737,
        "scheduled_date": (date.today() + timedelta(days=1)).isoformat(),
        "weight": 120.5,
        "volume": 0.8,
    }


@pytest.fixture
def sample_vehicle_data():
    """Sample vehicle payload for API tests."""
    return {
        "name": "Hyundai HD",
        "license_plate": f"01B{uuid4().hex[:3].upper()}AA",
        "capacity_weight": 3000,
        "capacity_volume": 20,
        "start_location": "Main depot",
    }
