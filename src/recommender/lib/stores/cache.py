"""Redis-backed cache store.

Values are stored as JSON strings with ``SET key value EX ttl``.  The cache
is best-effort: every failure or timeout is logged and reported as a miss
(reads) or silently dropped (writes), so an unavailable Redis degrades the
engine to recomputing on every request instead of failing it.
"""

import asyncio
import json
import logging
from typing import Any

from .base import CacheStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 0.5


class RedisCache(CacheStore):
    def __init__(self, redis, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
        self._redis = redis
        self._timeout = timeout_seconds

    async def get(self, key: str) -> Any | None:
        try:
            raw = await asyncio.wait_for(self._redis.get(key), self._timeout)
        except Exception as exc:
            logger.warning("Cache read failed for %s (%s); treating as miss", key, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            payload = json.dumps(value)
            await asyncio.wait_for(self._redis.set(key, payload, ex=ttl_seconds), self._timeout)
        except Exception as exc:
            logger.warning("Cache write failed for %s (%s); skipping", key, exc)
