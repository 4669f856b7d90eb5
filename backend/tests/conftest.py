"""
Pytest fixtures for test database, client, and authentication.

Tables are created and dropped around every test. Each request gets its own
session (as in production) so a rolled-back request never expires the
objects a test is holding. Runs on SQLite by default; point
TEST_DATABASE_URL at Postgres to exercise row locking for real.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite+aiosqlite:///./test_medbook.db")
os.environ.setdefault("DATABASE_URL", os.environ["TEST_DATABASE_URL"])

from datetime import datetime, timezone, timedelta
from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from medbook.main import app
from medbook.db.base import Base
from medbook.db.session import get_db
from medbook.core.security import create_access_token, hash_password
from medbook.models import Booking, Event, User

TEST_DATABASE_URL = os.environ["TEST_DATABASE_URL"]

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

PASSWORD = "testpassword123"


def auth_headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests run against the test database."""

    async def override_get_db():
        async with TestSessionLocal() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def make_user(db_session: AsyncSession):
    counter = {"n": 0}

    async def _make(role: str = "student", **overrides) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=overrides.pop("email", f"user{n}@example.com"),
            username=overrides.pop("username", f"user{n}"),
            name=overrides.pop("name", f"User {n}"),
            hashed_password=hash_password(PASSWORD),
            role=role,
            **overrides,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


@pytest_asyncio.fixture
async def test_user(make_user) -> User:
    """A student account."""
    return await make_user(email="test@example.com", username="testuser", name="Test Student")


@pytest_asyncio.fixture
async def admin_user(make_user) -> User:
    return await make_user(role="admin", email="admin@example.com", username="admin", name="Admin")


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    """Authorization headers with Bearer token."""
    return auth_headers_for(test_user)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict:
    return auth_headers_for(admin_user)


@pytest_asyncio.fixture
async def make_event(db_session: AsyncSession, admin_user: User):
    async def _make(**overrides) -> Event:
        starts_at = overrides.pop("starts_at", datetime.now(timezone.utc) + timedelta(days=7))
        fields = dict(
            title="Cardiology Grand Rounds",
            description="Monthly teaching session",
            location="Lecture Theatre 1",
            starts_at=starts_at,
            ends_at=starts_at + timedelta(hours=2),
            organizer_id=admin_user.id,
            booking_enabled=True,
            booking_capacity=10,
            allow_waitlist=True,
            approval_mode="auto",
            booking_deadline_hours=0,
            cancellation_deadline_hours=0,
            confirmation_checkbox_1_required=False,
            confirmation_checkbox_2_required=False,
            confirmed_count=0,
            version=1,
        )
        fields.update(overrides)
        event = Event(**fields)
        db_session.add(event)
        await db_session.commit()
        await db_session.refresh(event)
        return event

    return _make


@pytest_asyncio.fixture
async def test_event(make_event) -> Event:
    """An open event with 10 seats and a waitlist."""
    return await make_event()


@pytest_asyncio.fixture
async def single_seat_event(make_event) -> Event:
    return await make_event(title="Suturing Workshop", booking_capacity=1)


async def book(client: AsyncClient, headers: dict, event_id: int, **fields):
    payload = {"eventId": event_id, **fields}
    return await client.post("/api/bookings", json=payload, headers=headers)


async def reload(db_session: AsyncSession, obj):
    await db_session.refresh(obj)
    return obj


async def booking_status(db_session: AsyncSession, booking_id: int) -> str:
    booking = await db_session.get(Booking, booking_id, populate_existing=True)
    return booking.status
