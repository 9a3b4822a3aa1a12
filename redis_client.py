import json
import logging
from typing import Any, Optional

import redis

from config import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> Optional[redis.Redis]:
    global _redis_client
    if _redis_client is not None:
        return _redis_client

    if settings.REDIS_URL:
        _redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        return _redis_client

    return None


def cache_get(key: str) -> Any | None:
    client = get_redis_client()
    if not client:
        return None
    try:
        cached = client.get(key)
    except redis.RedisError as exc:
        logger.warning(f"Cache read failed for {key}: {exc}")
        return None
    return json.loads(cached) if cached else None


def cache_set(key: str, value: Any) -> None:
    client = get_redis_client()
    if not client:
        return
    try:
        client.setex(key, settings.CACHE_TTL_SECONDS, json.dumps(value))
    except redis.RedisError as exc:
        logger.warning(f"Cache write failed for {key}: {exc}")


def cache_invalidate(pattern: str) -> None:
    client = get_redis_client()
    if not client:
        return
    try:
        keys = list(client.scan_iter(match=pattern, count=200))
        if keys:
            client.delete(*keys)
    except redis.RedisError as exc:
        logger.warning(f"Cache invalidation failed for {pattern}: {exc}")
