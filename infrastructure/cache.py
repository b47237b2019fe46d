"""Cache backends"""
import json
import time
from typing import Any, Callable, Dict, Optional, Tuple

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from domain.ports import CacheBackend

logger = structlog.get_logger(__name__)


class InMemoryCacheBackend(CacheBackend):
    """Process-local TTL cache.

    Values are stored as JSON text so cached objects behave the same way
    they would coming back from Redis.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[float, str]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, raw = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: int) -> None:
        self._entries[key] = (self._clock() + ttl, json.dumps(value, default=str))

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class RedisCacheBackend(CacheBackend):
    """Redis-backed cache shared by every worker process.

    Redis outages degrade to cache misses: errors are logged, never raised.
    """

    def __init__(self, client: aioredis.Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheBackend":
        return cls(aioredis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self._client.get(key)
        except RedisError as e:
            logger.warning("cache_get_failed", key=key, error=str(e))
            return None
        return json.loads(raw) if raw else None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        try:
            await self._client.setex(key, ttl, json.dumps(value, default=str))
        except RedisError as e:
            logger.warning("cache_set_failed", key=key, error=str(e))

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            await self._client.delete(*keys)
        except RedisError as e:
            logger.warning("cache_delete_failed", keys=list(keys), error=str(e))

    async def close(self) -> None:
        await self._client.aclose()
