"""
Pytest fixtures for the test database, seeded catalog, callers and HTTP client.

Each test gets a fresh SQLite file database under tmp_path. Set
TEST_DATABASE_URL (e.g. a postgresql+asyncpg URL) to run the suite against a
real server instead; tables are created and dropped around every test.
"""

import os
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from entertainment_hub.core.config import get_settings
from entertainment_hub.core.locks import InventoryLockManager, get_lock_manager
from entertainment_hub.core.security import ROLE_ADMIN, ROLE_USER, CallerIdentity, create_access_token
from entertainment_hub.db.base import Base
from entertainment_hub.db.session import create_engine_from_url, create_session_factory, get_session_factory
from entertainment_hub.main import app
from entertainment_hub.models import Event, EventTicket, Movie, Restaurant, Showtime

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL")


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create tables, yield the engine, then drop tables for isolation."""
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}"
    test_engine = create_engine_from_url(url)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def locks() -> InventoryLockManager:
    return InventoryLockManager(backend="local", wait_seconds=5.0)


@pytest.fixture
def settings():
    return get_settings()


async def _persist(session_factory, *rows):
    async with session_factory() as session:
        async with session.begin():
            session.add_all(rows)
        for row in rows:
            await session.refresh(row)
    return rows


# --- Callers ----------------------------------------------------------------


@pytest.fixture
def user() -> CallerIdentity:
    return CallerIdentity(user_id=1, role=ROLE_USER)


@pytest.fixture
def other_user() -> CallerIdentity:
    return CallerIdentity(user_id=2, role=ROLE_USER)


@pytest.fixture
def admin() -> CallerIdentity:
    return CallerIdentity(user_id=99, role=ROLE_ADMIN)


def _headers(caller: CallerIdentity) -> dict:
    token = create_access_token(data={"sub": str(caller.user_id), "role": caller.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(user) -> dict:
    return _headers(user)


@pytest.fixture
def other_headers(other_user) -> dict:
    return _headers(other_user)


@pytest.fixture
def admin_headers(admin) -> dict:
    return _headers(admin)


# --- Catalog ----------------------------------------------------------------


@pytest_asyncio.fixture
async def movie(session_factory) -> Movie:
    (row,) = await _persist(
        session_factory,
        Movie(title="The Long Night", poster_url="https://img.example.com/long-night.jpg"),
    )
    return row


async def _showtime(session_factory, movie: Movie, seats: int) -> Showtime:
    (row,) = await _persist(
        session_factory,
        Showtime(
            movie_id=movie.id,
            theater_name="Hall 1",
            starts_at=datetime.combine(date.today() + timedelta(days=7), time(20, 0)),
            price=Decimal("12.50"),
            total_seats=seats,
            available_seats=seats,
        ),
    )
    return row


@pytest_asyncio.fixture
async def showtime(session_factory, movie) -> Showtime:
    """A showtime with 100 free seats, a week out."""
    return await _showtime(session_factory, movie, 100)


@pytest_asyncio.fixture
async def small_showtime(session_factory, movie) -> Showtime:
    """A showtime with exactly 2 seats."""
    return await _showtime(session_factory, movie, 2)


@pytest_asyncio.fixture
async def event(session_factory) -> Event:
    (row,) = await _persist(
        session_factory,
        Event(
            title="Harbour Jazz Night",
            event_date=date.today() + timedelta(days=30),
            event_time=time(19, 30),
            venue_name="Pier Hall",
            location="Old Harbour",
            current_attendees=48,
        ),
    )
    return row


@pytest_asyncio.fixture
async def ticket_tier(session_factory, event) -> EventTicket:
    """General admission: 50 available, 48 already sold."""
    (row,) = await _persist(
        session_factory,
        EventTicket(
            event_id=event.id,
            ticket_type="General",
            price=Decimal("40.00"),
            quantity_available=50,
            quantity_sold=48,
        ),
    )
    return row


@pytest_asyncio.fixture
async def vip_tier(session_factory, event) -> EventTicket:
    (row,) = await _persist(
        session_factory,
        EventTicket(
            event_id=event.id,
            ticket_type="VIP",
            price=Decimal("120.00"),
            quantity_available=20,
            quantity_sold=0,
        ),
    )
    return row


@pytest_asyncio.fixture
async def restaurant(session_factory) -> Restaurant:
    (row,) = await _persist(
        session_factory,
        Restaurant(id=5, name="Casa Lupa", address="12 Vine Street", is_active=True),
    )
    return row


# --- HTTP client --------------------------------------------------------------


@pytest_asyncio.fixture
async def client(session_factory, locks) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the session factory and lock manager bound to the test database."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_lock_manager] = lambda: locks

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
