"""
JSON values in Redis for the synchronous services.

Cache trouble is never an application error: reads degrade to a miss and
writes to a no-op, with a warning logged.
"""

import json
import logging
from typing import Any, Optional

from redis.exceptions import RedisError

from feelsy.core.redis import get_sync_redis

logger = logging.getLogger(__name__)


def cache_get(key: str) -> Optional[Any]:
    """Decoded value for `key`, or None on a miss, an unreadable value or a Redis error."""
    try:
        raw = get_sync_redis().get(key)
        return None if raw is None else json.loads(raw)
    except (RedisError, ValueError):
        logger.warning("Cache read failed for %s", key, exc_info=True)
        return None


def cache_set(key: str, value: Any, ttl: int = 60) -> None:
    try:
        get_sync_redis().set(key, json.dumps(value, default=str), ex=ttl)
    except RedisError:
        logger.warning("Cache write failed for %s", key, exc_info=True)


def cache_delete(key: str) -> None:
    try:
        get_sync_redis().delete(key)
    except RedisError:
        logger.warning("Cache delete failed for %s", key, exc_info=True)
