# common/cache.py
import json
import logging
from typing import Any, Optional

import redis

from .config import REDIS_URL

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> Optional[redis.Redis]:
    """
    Return a Redis client if REDIS_URL is configured, otherwise None.

    When Redis is unreachable the cache is disabled and every helper in
    this module becomes a no-op.
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    if not REDIS_URL:
        return None

    try:
        client = redis.from_url(REDIS_URL, decode_responses=True)
        client.ping()
    except redis.RedisError as exc:
        logger.warning(f"Redis unavailable, caching disabled: {exc}")
        return None

    _redis_client = client
    return _redis_client


def get_cached_json(key: str) -> Optional[Any]:
    client = get_redis_client()
    if client is None:
        return None

    try:
        raw = client.get(key)
    except redis.RedisError as exc:
        logger.warning(f"Cache read failed for {key}: {exc}")
        return None
    if raw is None:
        return None
    return json.loads(raw)


def set_cached_json(key: str, value: Any, ttl_seconds: int = 60) -> None:
    client = get_redis_client()
    if client is None:
        return

    try:
        client.setex(key, ttl_seconds, json.dumps(value, default=str))
    except redis.RedisError as exc:
        logger.warning(f"Cache write failed for {key}: {exc}")


def delete_prefix(*prefixes: str) -> None:
    """
    Delete all keys starting with any of the given prefixes.

    Example: delete_prefix('rooms:', 'locations:') after a room write.
    """
    client = get_redis_client()
    if client is None:
        return

    try:
        for prefix in prefixes:
            for k in client.scan_iter(prefix + "*"):
                client.delete(k)
    except redis.RedisError as exc:
        logger.warning(f"Cache invalidation failed for {prefixes}: {exc}")
