"""
Redis clients and key patterns.

The async client (API process) is created and pinged in the app lifespan and
backs the health check. The sync client is created lazily and serves the
streak locks and the JSON cache in services and Celery workers.
"""

import asyncio
import logging
from typing import Optional

from redis import Redis as SyncRedis
from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from feelsy.core.config import get_settings

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAYS = [1, 2, 4]  # seconds to wait after each failed PING

_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None
_sync_redis: Optional[SyncRedis] = None


def _reset_redis() -> None:
    """Forget every client (tests only)."""
    global _redis_pool, _redis_client, _sync_redis
    _redis_pool = None
    _redis_client = None
    _sync_redis = None


def _ensure_async_client() -> Redis:
    global _redis_pool, _redis_client
    if _redis_client is None:
        _redis_pool = ConnectionPool.from_url(
            get_settings().redis_url, max_connections=10, decode_responses=True
        )
        _redis_client = Redis(connection_pool=_redis_pool)
    return _redis_client


async def init_redis() -> None:
    """Create the async client and wait until Redis answers PING.

    Raises:
        RuntimeError: Redis did not answer after MAX_RETRIES attempts
    """
    client = _ensure_async_client()
    error: Optional[RedisError] = None

    for attempt, delay in enumerate(RETRY_DELAYS[:MAX_RETRIES], start=1):
        try:
            await client.ping()
        except RedisError as e:
            error = e
            if attempt == MAX_RETRIES:
                break
            logger.warning(
                "Redis PING failed (%d/%d), retrying in %ds: %s", attempt, MAX_RETRIES, delay, e
            )
            await asyncio.sleep(delay)
        else:
            logger.info("Redis reachable")
            return

    raise RuntimeError(f"Redis connection failed after {MAX_RETRIES} attempts: {error}")


async def close_redis() -> None:
    global _redis_pool, _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
    if _redis_pool is not None:
        await _redis_pool.disconnect()
        _redis_pool = None


def get_redis() -> Redis:
    """The async client.

    Raises:
        RuntimeError: init_redis() has not run
    """
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


def get_sync_redis() -> SyncRedis:
    """Lazily created sync client for locks and the cache."""
    global _sync_redis
    if _sync_redis is None:
        _sync_redis = SyncRedis.from_url(
            get_settings().redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=5,
        )
    return _sync_redis


class FeelKeys:
    """Redis key patterns for check-ins, streaks and the friend graph."""

    @staticmethod
    def streak_lock(user_id: str) -> str:
        """Per-user lock serializing StreakState writes."""
        return f"streak:{user_id}:lock"

    @staticmethod
    def accepted_friends(user_id: str) -> str:
        """Cached accepted friend ids."""
        return f"friends:{user_id}:accepted"
