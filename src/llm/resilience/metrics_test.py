"""Unit tests for performance metrics."""

import logging

import pytest

from .metrics import PerformanceMonitor, aggregate, percentile


class TestAggregation:
    """Tests for aggregate() and percentile()."""

    @pytest.mark.unit
    def test_percentile_nearest_rank(self):
        values = [float(v) for v in range(1, 101)]
        assert percentile(values, 0.5) == 50.0
        assert percentile(values, 0.95) == 95.0
        assert percentile(values, 0.99) == 99.0
        assert percentile([], 0.5) == 0.0

    @pytest.mark.unit
    def test_empty(self):
        metrics = aggregate([])
        assert metrics.total_requests == 0
        assert metrics.cache_hit_rate is None


class TestPerformanceMonitor:
    """Tests for the rolling data-point window."""

    @pytest.mark.unit
    def test_rates_and_counts(self):
        """Success, timeout and circuit-open counts are aggregated."""
        monitor = PerformanceMonitor(max_data_points=10)
        monitor.record("send_message", 100, True, provider="claude", cache_hit=False)
        monitor.record("send_message", 0.1, True, provider="claude", cache_hit=True)
        monitor.record("send_message", 300, False, provider="claude", error_category="timeout")
        monitor.record("send_message", 0, False, provider="openai", error_category="circuit_open")

        metrics = monitor.get_metrics()
        assert metrics.total_requests == 4
        assert metrics.success_rate == 0.5
        assert metrics.error_rate == 0.5
        assert metrics.timeout_count == 1
        assert metrics.circuit_open_count == 1
        assert metrics.cache_hits == 1
        assert metrics.cache_misses == 1
        assert metrics.cache_hit_rate == 0.5

    @pytest.mark.unit
    def test_filters(self):
        """Metrics can be filtered by operation and provider."""
        monitor = PerformanceMonitor(max_data_points=10)
        monitor.record("send_message", 10, True, provider="claude")
        monitor.record("stream_message", 20, True, provider="claude")
        monitor.record("send_message", 30, True, provider="openai")

        assert monitor.get_metrics(operation="send_message").total_requests == 2
        assert monitor.get_metrics(provider="claude").total_requests == 2
        assert monitor.get_metrics("send_message", "openai").average_duration_ms == 30
        assert set(monitor.metrics_by_operation()) == {"send_message", "stream_message"}

    @pytest.mark.unit
    def test_window_is_bounded(self):
        """Old points fall out of the window."""
        monitor = PerformanceMonitor(max_data_points=3)
        for i in range(5):
            monitor.record("op", float(i), True)

        assert [p.duration_ms for p in monitor.data_points()] == [2.0, 3.0, 4.0]
        monitor.reset()
        assert monitor.data_points() == []

    @pytest.mark.unit
    def test_slow_operation_warning(self, caplog):
        """Operations over the slow threshold are logged and counted."""
        monitor = PerformanceMonitor(max_data_points=10)
        with caplog.at_level(logging.WARNING):
            monitor.record("send_message", 6000, True, provider="gemini")

        assert "Slow operation" in caplog.text
        assert monitor.get_metrics().slow_operations == 1
