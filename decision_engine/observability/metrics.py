"""Prometheus-style metrics collector for advisory calls. Thread-safe, in-memory."""

import threading
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from statistics import fmean
from typing import Any, Optional

from decision_engine.core.clock import Clock, SystemClock

DEFAULT_STATISTICS_WINDOW = timedelta(hours=1)
MAX_RETAINED_EVENTS = 10_000


class MetricKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"
    RESPONSE_TIME = "response_time"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    CIRCUIT_BREAKER_OPEN = "circuit_breaker_open"
    FALLBACK_USED = "fallback_used"


@dataclass(frozen=True)
class _MetricEvent:
    operation: str
    kind: MetricKind
    timestamp: datetime
    duration_ms: Optional[float] = None
    from_cache: bool = False
    detail: Optional[str] = None


def _rate(part: int, whole: int) -> float:
    return part / whole * 100 if whole > 0 else 0.0


@dataclass(frozen=True)
class PerformanceStatistics:
    operation: Optional[str]
    period_start: datetime
    period_end: datetime
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    timeout_requests: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    fallback_usages: int = 0
    circuit_breaker_trips: int = 0
    average_response_ms: Optional[float] = None
    p50_response_ms: Optional[float] = None
    p95_response_ms: Optional[float] = None
    p99_response_ms: Optional[float] = None
    errors_by_type: dict[str, int] = field(default_factory=dict)
    fallback_reasons: dict[str, int] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        return _rate(self.successful_requests, self.total_requests)

    @property
    def timeout_rate(self) -> float:
        return _rate(self.timeout_requests, self.total_requests)

    @property
    def cache_hit_rate(self) -> float:
        return _rate(self.cache_hits, self.cache_hits + self.cache_misses)


class MetricsCollector:
    """
    In-memory registry implementing the gateway's metrics port.
    Keeps Prometheus-style counters and latency histograms (labelled by operation)
    plus a bounded event log that backs windowed get_statistics queries.
    """

    def __init__(self, clock: Clock | None = None, max_events: int = MAX_RETAINED_EVENTS) -> None:
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._counters: dict[str, float] = {}
        self._counters_by_labels: dict[str, dict[str, float]] = {}
        self._max_events = max_events
        # histograms keep the most recent max_events samples per bucket
        self._histograms: dict[str, deque[float]] = {}
        self._events: deque[_MetricEvent] = deque(maxlen=max_events)

    # --- Prometheus-style primitives ---

    def increment(
        self,
        name: str,
        value: float = 1.0,
        *,
        tenant_id: str | None = None,
        category: str | None = None,
    ) -> None:
        """Increment a counter. Optional tenant_id or category for dimensional metrics."""
        with self._lock:
            self._increment_locked(name, value, tenant_id=tenant_id, category=category)

    def _increment_locked(
        self, name: str, value: float, *, tenant_id: str | None = None, category: str | None = None
    ) -> None:
        if tenant_id is not None:
            key = f"{name}:tenant={tenant_id}"
        elif category is not None:
            key = f"{name}:category={category}"
        else:
            self._counters[name] = self._counters.get(name, 0) + value
            return
        labelled = self._counters_by_labels.setdefault(name, {})
        labelled[key] = labelled.get(key, 0) + value

    def observe_latency(self, name: str, latency_ms: float, *, node: str | None = None) -> None:
        """Record a latency observation (histogram-style). Optional node label."""
        with self._lock:
            bucket = name if node is None else f"{name}:node={node}"
            self._histograms.setdefault(bucket, deque(maxlen=self._max_events)).append(latency_ms)

    def export_metrics(self) -> dict[str, Any]:
        """Export all counters and histograms as a dict (Prometheus-style)."""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "counters_by_labels": {k: dict(v) for k, v in self._counters_by_labels.items()},
                "histograms": {
                    k: {"count": len(v), "sum": sum(v), "values": list(v)}
                    for k, v in self._histograms.items()
                },
            }

    def reset(self) -> None:
        """Reset all metrics (for tests)."""
        with self._lock:
            self._counters.clear()
            self._counters_by_labels.clear()
            self._histograms.clear()
            self._events.clear()

    # --- Metrics port ---

    def _record(self, operation: str, kind: MetricKind, **fields: Any) -> None:
        with self._lock:
            self._events.append(_MetricEvent(operation, kind, self._clock.now(), **fields))
            self._increment_locked(f"advisory_{kind.value}_total", 1, category=operation)

    def record_success(self, operation: str) -> None:
        self._record(operation, MetricKind.SUCCESS)

    def record_error(self, operation: str, error_type: str) -> None:
        self._record(operation, MetricKind.ERROR, detail=error_type)

    def record_timeout(self, operation: str) -> None:
        self._record(operation, MetricKind.TIMEOUT)

    def record_response_time(self, operation: str, duration_ms: float, from_cache: bool) -> None:
        self._record(operation, MetricKind.RESPONSE_TIME, duration_ms=duration_ms, from_cache=from_cache)
        self.observe_latency("advisory_response_ms", duration_ms, node=operation)

    def record_cache_hit(self, operation: str) -> None:
        self._record(operation, MetricKind.CACHE_HIT)

    def record_cache_miss(self, operation: str) -> None:
        self._record(operation, MetricKind.CACHE_MISS)

    def record_circuit_breaker_open(self, operation: str) -> None:
        self._record(operation, MetricKind.CIRCUIT_BREAKER_OPEN)

    def record_fallback_used(self, operation: str, reason: str) -> None:
        self._record(operation, MetricKind.FALLBACK_USED, detail=reason)

    def get_statistics(
        self, operation: Optional[str] = None, since: Optional[datetime] = None
    ) -> PerformanceStatistics:
        """Aggregate events since `since` (default: the last hour), optionally for one operation."""
        now = self._clock.now()
        start = since if since is not None else now - DEFAULT_STATISTICS_WINDOW
        with self._lock:
            events = [
                e for e in self._events
                if e.timestamp >= start and (operation is None or e.operation == operation)
            ]

        counts = Counter(e.kind for e in events)
        durations = sorted(e.duration_ms for e in events if e.duration_ms is not None)
        percentiles: dict[str, Optional[float]] = {"p50": None, "p95": None, "p99": None}
        if durations:
            for name, fraction in (("p50", 0.50), ("p95", 0.95), ("p99", 0.99)):
                percentiles[name] = durations[min(int(len(durations) * fraction), len(durations) - 1)]

        return PerformanceStatistics(
            operation=operation,
            period_start=start,
            period_end=now,
            total_requests=counts[MetricKind.SUCCESS] + counts[MetricKind.ERROR] + counts[MetricKind.TIMEOUT],
            successful_requests=counts[MetricKind.SUCCESS],
            failed_requests=counts[MetricKind.ERROR],
            timeout_requests=counts[MetricKind.TIMEOUT],
            cache_hits=counts[MetricKind.CACHE_HIT],
            cache_misses=counts[MetricKind.CACHE_MISS],
            fallback_usages=counts[MetricKind.FALLBACK_USED],
            circuit_breaker_trips=counts[MetricKind.CIRCUIT_BREAKER_OPEN],
            average_response_ms=fmean(durations) if durations else None,
            p50_response_ms=percentiles["p50"],
            p95_response_ms=percentiles["p95"],
            p99_response_ms=percentiles["p99"],
            errors_by_type=dict(Counter(e.detail for e in events if e.kind == MetricKind.ERROR and e.detail)),
            fallback_reasons=dict(
                Counter(e.detail for e in events if e.kind == MetricKind.FALLBACK_USED and e.detail)
            ),
        )
