"""Redis-backed response cache. Values are stored as pydantic JSON with a millisecond TTL."""

import logging
import threading
from datetime import datetime, timezone
from typing import Optional, TypeVar

import redis.asyncio as redis
from pydantic import BaseModel, ValidationError

from decision_engine.infrastructure.cache.statistics import CacheStatistics

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class RedisResponseCache:
    """Shares cached advisory responses across processes. Hit/miss counters are per process."""

    def __init__(self, client: redis.Redis, key_prefix: str = "advisory") -> None:
        self.client = client
        self._prefix = f"{key_prefix}:cache:"
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._last_cleared_at = datetime.now(timezone.utc)

    @classmethod
    def from_url(cls, redis_url: str, key_prefix: str = "advisory") -> "RedisResponseCache":
        return cls(redis.from_url(redis_url, decode_responses=True), key_prefix=key_prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _count(self, hit: bool) -> None:
        with self._lock:
            if hit:
                self._hits += 1
            else:
                self._misses += 1

    async def get(self, key: str, model: type[M]) -> Optional[M]:
        raw = await self.client.get(self._key(key))
        if raw is None:
            self._count(hit=False)
            return None
        try:
            value = model.model_validate_json(raw)
        except ValidationError:
            logger.warning("cache_entry_invalid", extra={"cache_key": key, "model": model.__name__})
            await self.client.delete(self._key(key))
            self._count(hit=False)
            return None
        self._count(hit=True)
        return value

    async def set(self, key: str, value: BaseModel, ttl_seconds: float) -> None:
        await self.client.set(self._key(key), value.model_dump_json(), px=max(1, int(ttl_seconds * 1000)))

    async def remove(self, key: str) -> None:
        await self.client.delete(self._key(key))

    async def clear(self) -> None:
        keys = [key async for key in self.client.scan_iter(match=f"{self._prefix}*")]
        if keys:
            await self.client.delete(*keys)
        with self._lock:
            self._last_cleared_at = datetime.now(timezone.utc)

    async def statistics(self) -> CacheStatistics:
        entries = 0
        async for _ in self.client.scan_iter(match=f"{self._prefix}*"):
            entries += 1
        with self._lock:
            return CacheStatistics(
                total_entries=entries,
                total_hits=self._hits,
                total_misses=self._misses,
                last_cleared_at=self._last_cleared_at,
            )
