"""MetricsCollector tests: counters, histograms, windowed advisory statistics."""

import threading
from datetime import timedelta

import pytest

from decision_engine.observability.metrics import MetricsCollector


@pytest.fixture
def metrics(clock):
    return MetricsCollector(clock=clock)


def test_metrics_counter_increment():
    m = MetricsCollector()
    m.increment("request_count")
    m.increment("request_count", 2)
    assert m.export_metrics()["counters"]["request_count"] == 3


def test_metrics_histogram_tracks_latency():
    m = MetricsCollector()
    m.observe_latency("request_latency", 10.5)
    m.observe_latency("request_latency", 20.0)
    h = m.export_metrics()["histograms"]["request_latency"]
    assert h["count"] == 2
    assert h["sum"] == 30.5


def test_record_methods_count_per_operation(metrics):
    metrics.record_success("recommend_discount")
    metrics.record_success("recommend_discount")
    metrics.record_timeout("calculate_risk_score")
    labels = metrics.export_metrics()["counters_by_labels"]
    assert labels["advisory_success_total"] == {"advisory_success_total:category=recommend_discount": 2}
    assert labels["advisory_timeout_total"] == {"advisory_timeout_total:category=calculate_risk_score": 1}


def test_response_times_feed_histogram_by_operation(metrics):
    metrics.record_response_time("explain_decision", 12.0, from_cache=False)
    histograms = metrics.export_metrics()["histograms"]
    assert histograms["advisory_response_ms:node=explain_decision"]["values"] == [12.0]


def test_statistics_rates(metrics):
    for _ in range(3):
        metrics.record_success("recommend_discount")
    metrics.record_timeout("recommend_discount")
    metrics.record_cache_hit("recommend_discount")
    metrics.record_cache_miss("recommend_discount")
    metrics.record_cache_miss("recommend_discount")
    metrics.record_cache_miss("recommend_discount")

    stats = metrics.get_statistics("recommend_discount")
    assert stats.total_requests == 4
    assert stats.success_rate == 75.0
    assert stats.timeout_rate == 25.0
    assert stats.cache_hit_rate == 25.0


def test_statistics_empty_window(metrics):
    stats = metrics.get_statistics()
    assert stats.total_requests == 0
    assert stats.success_rate == 0.0
    assert stats.cache_hit_rate == 0.0
    assert stats.average_response_ms is None
    assert stats.p95_response_ms is None


def test_statistics_percentiles(metrics):
    for ms in range(1, 101):
        metrics.record_response_time("recommend_discount", float(ms), from_cache=False)
    stats = metrics.get_statistics()
    assert stats.average_response_ms == pytest.approx(50.5)
    assert stats.p50_response_ms == 51.0
    assert stats.p95_response_ms == 96.0
    assert stats.p99_response_ms == 100.0


def test_statistics_filter_by_operation(metrics):
    metrics.record_success("recommend_discount")
    metrics.record_error("calculate_risk_score", "ConnectionError")
    assert metrics.get_statistics("recommend_discount").failed_requests == 0
    assert metrics.get_statistics().total_requests == 2


def test_statistics_default_window_is_one_hour(metrics, clock):
    metrics.record_success("recommend_discount")
    clock.advance(3601)
    metrics.record_success("recommend_discount")
    assert metrics.get_statistics().successful_requests == 1
    assert metrics.get_statistics(since=clock.now() - timedelta(hours=2)).successful_requests == 2


def test_statistics_break_down_errors_and_fallbacks(metrics):
    metrics.record_error("recommend_discount", "ConnectionError")
    metrics.record_error("recommend_discount", "ConnectionError")
    metrics.record_error("recommend_discount", "ValueError")
    metrics.record_fallback_used("recommend_discount", "circuit breaker open")
    metrics.record_circuit_breaker_open("recommend_discount")

    stats = metrics.get_statistics()
    assert stats.errors_by_type == {"ConnectionError": 2, "ValueError": 1}
    assert stats.fallback_reasons == {"circuit breaker open": 1}
    assert stats.fallback_usages == 1
    assert stats.circuit_breaker_trips == 1


def test_event_log_and_histograms_are_bounded(clock):
    m = MetricsCollector(clock=clock, max_events=10)
    for i in range(25):
        m.record_success("recommend_discount")
        m.record_response_time("recommend_discount", float(i), from_cache=False)
    assert m.get_statistics().successful_requests == 5
    histogram = m.export_metrics()["histograms"]["advisory_response_ms:node=recommend_discount"]
    assert histogram["count"] == 10
    assert histogram["values"] == [float(i) for i in range(15, 25)]


def test_metrics_thread_safe():
    m = MetricsCollector()

    def record():
        for _ in range(100):
            m.record_success("recommend_discount")

    threads = [threading.Thread(target=record) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert m.get_statistics().successful_requests == 1000


def test_metrics_reset(metrics):
    metrics.increment("x")
    metrics.record_success("recommend_discount")
    metrics.reset()
    out = metrics.export_metrics()
    assert out["counters"] == {}
    assert out["counters_by_labels"] == {}
    assert metrics.get_statistics().total_requests == 0
