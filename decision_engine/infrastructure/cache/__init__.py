"""Response cache adapters."""

from decision_engine.infrastructure.cache.memory_cache import InMemoryResponseCache
from decision_engine.infrastructure.cache.redis_cache import RedisResponseCache
from decision_engine.infrastructure.cache.statistics import CacheStatistics

__all__ = [
    "CacheStatistics",
    "InMemoryResponseCache",
    "RedisResponseCache",
]
