"""Process-local response cache. Expiry is checked lazily against an injected Clock."""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, TypeVar

from pydantic import BaseModel

from decision_engine.core.clock import Clock, SystemClock
from decision_engine.infrastructure.cache.statistics import CacheStatistics

M = TypeVar("M", bound=BaseModel)

# Expired entries are swept on write once the cache grows past this size
CLEANUP_THRESHOLD = 1000


@dataclass(frozen=True)
class _CacheEntry:
    value: BaseModel
    expires_at: datetime


class InMemoryResponseCache:
    """Thread-safe. Stored models are immutable, so hits return the cached instance itself."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._entries: dict[str, _CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._last_cleared_at = self._clock.now()

    async def get(self, key: str, model: type[M]) -> Optional[M]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.expires_at <= self._clock.now():
                del self._entries[key]
                entry = None
            if entry is None or not isinstance(entry.value, model):
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    async def set(self, key: str, value: BaseModel, ttl_seconds: float) -> None:
        now = self._clock.now()
        with self._lock:
            self._entries[key] = _CacheEntry(value, now + timedelta(seconds=ttl_seconds))
            if len(self._entries) > CLEANUP_THRESHOLD:
                self._remove_expired(now)

    async def remove(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._last_cleared_at = self._clock.now()

    async def statistics(self) -> CacheStatistics:
        with self._lock:
            return CacheStatistics(
                total_entries=len(self._entries),
                total_hits=self._hits,
                total_misses=self._misses,
                last_cleared_at=self._last_cleared_at,
            )

    def _remove_expired(self, now: datetime) -> None:
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
