"""
Per-key serialization of inventory mutations.

LOCKING STRATEGY
================

Every reservation and compensation touches exactly one inventory key:

  showtime:{id}                          movie seats
  ticket_tier:{id}                       event ticket tier
  restaurant:{id}:{YYYY-MM-DD}:{HH:MM}   restaurant time slot

The re-check / insert / decrement sequence must be linearized per key while
different keys proceed concurrently. Layers, outermost first:

  1. In-process asyncio.Lock per key. Always on. Held across the whole unit
     of work, commit included.
  2. Redis lock per key (LOCK_BACKEND=redis) for multiple workers. Fails open
     on Redis errors: the database layers below still hold.
  3. Row locks (SELECT ... FOR UPDATE) on showtime / ticket-tier rows and a
     transaction-scoped advisory lock for restaurant slots on PostgreSQL.
     See services/inventory_service.py.
  4. Conditional UPDATE ... WHERE available_seats >= n as the last guard.

Lock entries are dropped as soon as nobody holds or waits on them, so the
manager never accumulates one lock per showtime ever booked.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import date, time
from typing import AsyncIterator, Dict, Optional

from redis.exceptions import RedisError

from entertainment_hub.core.config import get_settings
from entertainment_hub.core.exceptions import LockTimeoutError
from entertainment_hub.core.logging import get_logger
from entertainment_hub.core.metrics import record_lock_timeout, redis_lock_errors
from entertainment_hub.infrastructure.redis_client import get_redis

logger = get_logger(__name__)

REDIS_LOCK_PREFIX = "lock:inventory:"


def showtime_key(showtime_id: int) -> str:
    return f"showtime:{showtime_id}"


def ticket_tier_key(ticket_tier_id: int) -> str:
    return f"ticket_tier:{ticket_tier_id}"


def restaurant_slot_key(restaurant_id: int, slot_date: date, slot_time: time) -> str:
    return f"restaurant:{restaurant_id}:{slot_date.isoformat()}:{slot_time.strftime('%H:%M')}"


class InventoryLockManager:
    """Hands out per-key locks; one instance per worker process."""

    def __init__(
        self,
        backend: str = "local",
        wait_seconds: float = 5.0,
        hold_seconds: float = 10.0,
    ):
        self.backend = backend
        self.wait_seconds = wait_seconds
        self.hold_seconds = hold_seconds
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def is_held(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.wait_seconds)
            except asyncio.TimeoutError:
                record_lock_timeout("local")
                logger.warning("inventory_lock_timeout", key=key, backend="local")
                raise LockTimeoutError(key, self.wait_seconds) from None

            try:
                async with self._distributed(key):
                    yield
            finally:
                lock.release()
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                self._locks.pop(key, None)

    @asynccontextmanager
    async def _distributed(self, key: str) -> AsyncIterator[None]:
        client = await get_redis() if self.backend == "redis" else None
        if client is None:
            if self.backend == "redis":
                logger.warning("inventory_lock_degraded", key=key, reason="redis_unavailable")
            yield
            return

        redis_lock = client.lock(
            REDIS_LOCK_PREFIX + key,
            timeout=self.hold_seconds,
            blocking_timeout=self.wait_seconds,
        )
        acquired: Optional[bool]
        try:
            acquired = await redis_lock.acquire()
        except RedisError as e:
            redis_lock_errors.inc()
            logger.warning("inventory_lock_degraded", key=key, reason="redis_error", error=str(e))
            acquired = None

        if acquired is False:
            record_lock_timeout("redis")
            logger.warning("inventory_lock_timeout", key=key, backend="redis")
            raise LockTimeoutError(key, self.wait_seconds)

        try:
            yield
        finally:
            if acquired:
                try:
                    await redis_lock.release()
                except RedisError as e:
                    # Expired while held; the database locks covered the commit
                    redis_lock_errors.inc()
                    logger.warning("inventory_lock_release_failed", key=key, error=str(e))


_lock_manager: Optional[InventoryLockManager] = None


def get_lock_manager() -> InventoryLockManager:
    """Get the per-process lock manager singleton."""
    global _lock_manager
    if _lock_manager is None:
        settings = get_settings()
        _lock_manager = InventoryLockManager(
            backend=settings.LOCK_BACKEND,
            wait_seconds=settings.LOCK_WAIT_SECONDS,
            hold_seconds=settings.LOCK_TIMEOUT_SECONDS,
        )
    return _lock_manager
