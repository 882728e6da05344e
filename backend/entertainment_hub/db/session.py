"""
Engine, session factory and the unit of work used by the booking core.

Reservations and cancellations own their transactions: each one opens a
fresh session from the factory and runs inside a single session.begin()
block, so a failure anywhere rolls back the booking row and the inventory
counter together.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from entertainment_hub.core.config import get_settings
from entertainment_hub.core.exceptions import BookingError, PersistenceError
from entertainment_hub.core.logging import get_logger

logger = get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def create_engine_from_url(url: str, echo: bool = False) -> AsyncEngine:
    settings = get_settings()
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(
        url,
        echo=echo,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine_from_url(settings.DATABASE_URL, echo=settings.DEBUG)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency; tests override it with a factory bound to the test database."""
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


@asynccontextmanager
async def unit_of_work(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """
    Open a session and a transaction; commit on success, roll back on any error.

    Storage errors surface as PersistenceError, chained to the original.
    """
    async with session_factory() as session:
        try:
            async with session.begin():
                yield session
        except BookingError:
            raise
        except SQLAlchemyError as exc:
            logger.error("unit_of_work_rolled_back", error=str(exc))
            raise PersistenceError("Booking storage could not commit the transaction") from exc


def dialect_name(session: AsyncSession) -> str:
    return session.get_bind().dialect.name
