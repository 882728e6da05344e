"""
Async Redis connection used for cross-worker inventory locks.

Redis is advisory here: the database row locks and conditional updates
remain authoritative, so a missing Redis only degrades serialization to a
single worker's in-process locks.
"""

from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from entertainment_hub.core.config import get_settings
from entertainment_hub.core.logging import get_logger

logger = get_logger(__name__)

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create the Redis connection. Returns None if Redis is disabled or down."""
    global _redis_client
    settings = get_settings()

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        try:
            await client.ping()
        except RedisError as e:
            logger.error("redis_connection_failed", error=str(e))
            await client.aclose()
            return None
        logger.info("redis_connected", url=settings.REDIS_URL)
        _redis_client = client

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


async def get_redis_status() -> dict:
    """Connection summary for the health endpoint."""
    settings = get_settings()
    if settings.LOCK_BACKEND != "redis" or not settings.REDIS_ENABLED:
        return {"status": "disabled"}

    client = await get_redis()
    if not client:
        return {"status": "unavailable"}

    try:
        info = await client.info("clients")
        return {
            "status": "connected",
            "connected_clients": info.get("connected_clients", 0),
        }
    except RedisError as e:
        return {"status": "error", "error": str(e)}
