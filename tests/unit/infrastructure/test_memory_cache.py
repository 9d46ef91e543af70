"""InMemoryResponseCache: TTL expiry against a controllable clock, model-typed lookups, statistics."""

from decimal import Decimal

import pytest

from decision_engine.application.schemas import AdvisoryExplanation, AdvisoryRiskScore
from decision_engine.infrastructure.cache import memory_cache
from decision_engine.infrastructure.cache.memory_cache import InMemoryResponseCache


@pytest.fixture
def cache(clock):
    return InMemoryResponseCache(clock=clock)


@pytest.fixture
def explanation():
    return AdvisoryExplanation(summary="cached")


@pytest.mark.asyncio
async def test_get_returns_stored_value(cache, explanation):
    await cache.set("k", explanation, ttl_seconds=60)
    assert await cache.get("k", AdvisoryExplanation) is explanation


@pytest.mark.asyncio
async def test_entry_expires_after_ttl(cache, clock, explanation):
    await cache.set("k", explanation, ttl_seconds=60)
    clock.advance(59)
    assert await cache.get("k", AdvisoryExplanation) is not None
    clock.advance(1)
    assert await cache.get("k", AdvisoryExplanation) is None
    assert (await cache.statistics()).total_entries == 0


@pytest.mark.asyncio
async def test_wrong_model_is_a_miss(cache, explanation):
    await cache.set("k", explanation, ttl_seconds=60)
    assert await cache.get("k", AdvisoryRiskScore) is None
    stats = await cache.statistics()
    assert stats.total_misses == 1
    assert stats.total_hits == 0


@pytest.mark.asyncio
async def test_remove_and_clear(cache, clock, explanation):
    await cache.set("a", explanation, ttl_seconds=60)
    await cache.set("b", explanation, ttl_seconds=60)
    await cache.remove("a")
    await cache.remove("missing")
    assert await cache.get("a", AdvisoryExplanation) is None
    clock.advance(5)
    await cache.clear()
    stats = await cache.statistics()
    assert stats.total_entries == 0
    assert stats.last_cleared_at == clock.now()


@pytest.mark.asyncio
async def test_statistics_hit_rate(cache, explanation):
    await cache.set("k", explanation, ttl_seconds=60)
    await cache.get("k", AdvisoryExplanation)
    await cache.get("k", AdvisoryExplanation)
    await cache.get("other", AdvisoryExplanation)
    await cache.get("another", AdvisoryExplanation)
    stats = await cache.statistics()
    assert stats.total_hits == 2
    assert stats.total_misses == 2
    assert stats.hit_rate == 50.0


@pytest.mark.asyncio
async def test_expired_entries_swept_when_cache_grows(cache, clock, monkeypatch):
    monkeypatch.setattr(memory_cache, "CLEANUP_THRESHOLD", 3)
    score = AdvisoryRiskScore(score=Decimal("10"), risk_level="Low", confidence=Decimal("0.9"))
    for key in ("a", "b", "c"):
        await cache.set(key, score, ttl_seconds=1)
    clock.advance(2)
    await cache.set("d", score, ttl_seconds=60)
    assert (await cache.statistics()).total_entries == 1
