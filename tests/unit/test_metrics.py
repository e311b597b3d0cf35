"""Tests for the metrics collection module."""

import time

import pytest

from self_correction.utils.metrics import (
    Counter,
    Gauge,
    Histogram,
    MetricsRegistry,
    MetricType,
    Timer,
)


class TestCounter:
    """Tests for Counter metric."""

    def test_counter_initial_value(self) -> None:
        """Test counter starts at zero."""
        counter = Counter("test_counter", "Test counter")
        assert counter.get() == 0

    def test_counter_multiple_increments(self) -> None:
        """Test multiple counter increments."""
        counter = Counter("test_counter")
        counter.inc()
        counter.inc(3)
        assert counter.get() == 4

    def test_counter_with_labels(self) -> None:
        """Test counter with labels."""
        counter = Counter("test_counter")
        counter.inc(labels={"strategy": "targeted_fix"})
        counter.inc(labels={"strategy": "skip"})
        counter.inc(labels={"strategy": "targeted_fix"})

        assert counter.get(labels={"strategy": "targeted_fix"}) == 2
        assert counter.get(labels={"strategy": "skip"}) == 1
        assert counter.get(labels={"strategy": "rollback"}) == 0

    def test_counter_total_spans_labels(self) -> None:
        """Test that total sums every label set."""
        counter = Counter("test_counter")
        counter.inc()
        counter.inc(2, labels={"type": "syntax_error"})
        assert counter.total() == 3

    def test_counter_cannot_decrease(self) -> None:
        """Test that counter rejects negative values."""
        counter = Counter("test_counter")
        with pytest.raises(ValueError, match="can only increase"):
            counter.inc(-1)

    def test_counter_get_all(self) -> None:
        """Test getting all counter values."""
        counter = Counter("test_counter", "Help text")
        counter.inc(labels={"a": "1"})
        counter.inc(2, labels={"a": "2"})

        values = counter.get_all()
        assert len(values) == 2
        assert all(v.type == MetricType.COUNTER for v in values)


class TestGauge:
    """Tests for Gauge metric."""

    def test_gauge_set_inc_dec(self) -> None:
        """Test setting, incrementing and decrementing a gauge."""
        gauge = Gauge("test_gauge")
        gauge.set(10)
        gauge.inc()
        gauge.dec(3)
        assert gauge.get() == 8

    def test_gauge_can_be_negative(self) -> None:
        """Test gauge can have negative values."""
        gauge = Gauge("test_gauge")
        gauge.dec()
        assert gauge.get() == -1


class TestHistogram:
    """Tests for Histogram metric."""

    def test_histogram_stats(self) -> None:
        """Test histogram statistics."""
        histogram = Histogram("test_histogram")
        for value in (1.0, 2.0, 3.0):
            histogram.observe(value)

        stats = histogram.get_stats()
        assert stats["count"] == 3
        assert stats["sum"] == 6.0
        assert stats["min"] == 1.0
        assert stats["max"] == 3.0
        assert stats["mean"] == 2.0

    def test_histogram_empty(self) -> None:
        """Test histogram with no observations."""
        stats = Histogram("test_histogram").get_stats()
        assert stats["count"] == 0

    def test_histogram_buckets(self) -> None:
        """Test histogram bucket counts."""
        histogram = Histogram("test_histogram", buckets=(1.0, 5.0, float("inf")))
        histogram.observe(0.5)
        histogram.observe(3.0)
        histogram.observe(15.0)

        buckets = histogram.get_buckets()
        assert buckets == {1.0: 1, 5.0: 1, float("inf"): 1}


class TestMetricsRegistry:
    """Tests for MetricsRegistry."""

    def test_registries_are_independent(self) -> None:
        """Test that each engine gets its own counters."""
        first = MetricsRegistry()
        second = MetricsRegistry()
        first.sessions_created.inc()
        assert second.sessions_created.get() == 0

    def test_registry_get_all_metrics(self) -> None:
        """Test getting all metrics as dictionary."""
        registry = MetricsRegistry()
        registry.errors_detected.inc(labels={"type": "syntax_error"})
        registry.attempts_started.inc(labels={"strategy": "targeted_fix"})
        registry.attempts_rejected.inc(labels={"reason": "attempt_limit_reached"})
        registry.active_sessions.inc()

        metrics = registry.get_all_metrics()

        assert metrics["uptime_seconds"] >= 0
        assert metrics["detection"]["errors_detected"] == 1
        assert metrics["attempts"]["started"] == 1
        assert metrics["attempts"]["rejected"] == 1
        assert metrics["sessions"]["active"] == 1
        assert metrics["events"]["listener_errors"] == 0

    def test_registry_prometheus_format(self) -> None:
        """Test Prometheus format export."""
        registry = MetricsRegistry()
        registry.attempts_succeeded.inc(labels={"strategy": "targeted_fix"})
        output = registry.to_prometheus_format()

        assert "# TYPE self_correction_attempts_succeeded_total counter" in output
        assert 'self_correction_attempts_succeeded_total{strategy="targeted_fix"} 1' in output
        assert "# TYPE self_correction_active_sessions gauge" in output
        assert "self_correction_uptime_seconds" in output


class TestTimer:
    """Tests for Timer context manager."""

    def test_timer_records_duration(self) -> None:
        """Test that timer records duration."""
        histogram = Histogram("test_timer")

        with Timer(histogram):
            time.sleep(0.01)

        stats = histogram.get_stats()
        assert stats["count"] == 1
        assert stats["sum"] >= 0.01

    def test_timer_records_on_exception(self) -> None:
        """Test that timer records even if exception is raised."""
        histogram = Histogram("test_timer")

        with pytest.raises(ValueError), Timer(histogram, labels={"strategy": "skip"}):
            raise ValueError("test error")

        assert histogram.get_stats(labels={"strategy": "skip"})["count"] == 1
