"""Metrics collection for observability.

This module provides engine metrics for monitoring:
- Detection counters by error type
- Correction attempt counters by strategy and outcome
- Session lifecycle counters and the active session gauge
- Attempt duration histograms

Metrics are designed to be compatible with Prometheus-style monitoring
but can be exported in various formats. Each engine owns its own
registry; there is no process-wide instance.
"""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from threading import Lock
from typing import Any


class MetricType(StrEnum):
    """Types of metrics."""

    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"


@dataclass
class MetricValue:
    """A single metric value with metadata."""

    name: str
    type: MetricType
    value: float
    labels: dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    help_text: str = ""


def _label_key(labels: dict[str, str] | None) -> tuple[tuple[str, str], ...]:
    return tuple(sorted(labels.items())) if labels else ()


class Counter:
    """A monotonically increasing counter.

    Example:
        counter = Counter("errors_detected", "Total errors detected")
        counter.inc()
        counter.inc(labels={"type": "syntax_error"})
    """

    def __init__(self, name: str, help_text: str = "") -> None:
        self.name = name
        self.help_text = help_text
        self._values: dict[tuple[tuple[str, str], ...], float] = defaultdict(float)
        self._lock = Lock()

    def inc(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        """Increment the counter.

        Args:
            value: Amount to increment (default 1)
            labels: Optional labels for this observation
        """
        if value < 0:
            raise ValueError("Counter can only increase")

        with self._lock:
            self._values[_label_key(labels)] += value

    def get(self, labels: dict[str, str] | None = None) -> float:
        """Get current counter value for the given labels."""
        with self._lock:
            return self._values.get(_label_key(labels), 0)

    def total(self) -> float:
        """Get the sum of the counter across all label sets."""
        with self._lock:
            return sum(self._values.values())

    def get_all(self) -> list[MetricValue]:
        """Get all counter values with their labels."""
        with self._lock:
            return [
                MetricValue(
                    name=self.name,
                    type=MetricType.COUNTER,
                    value=value,
                    labels=dict(label_key),
                    help_text=self.help_text,
                )
                for label_key, value in self._values.items()
            ]


class Gauge:
    """A metric that can go up or down.

    Example:
        gauge = Gauge("active_sessions", "Number of active sessions")
        gauge.inc()
        gauge.dec()
    """

    def __init__(self, name: str, help_text: str = "") -> None:
        self.name = name
        self.help_text = help_text
        self._values: dict[tuple[tuple[str, str], ...], float] = defaultdict(float)
        self._lock = Lock()

    def set(self, value: float, labels: dict[str, str] | None = None) -> None:
        """Set the gauge value."""
        with self._lock:
            self._values[_label_key(labels)] = value

    def inc(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        """Increment the gauge."""
        with self._lock:
            self._values[_label_key(labels)] += value

    def dec(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        """Decrement the gauge."""
        with self._lock:
            self._values[_label_key(labels)] -= value

    def get(self, labels: dict[str, str] | None = None) -> float:
        """Get current gauge value."""
        with self._lock:
            return self._values.get(_label_key(labels), 0)

    def get_all(self) -> list[MetricValue]:
        """Get all gauge values with their labels."""
        with self._lock:
            return [
                MetricValue(
                    name=self.name,
                    type=MetricType.GAUGE,
                    value=value,
                    labels=dict(label_key),
                    help_text=self.help_text,
                )
                for label_key, value in self._values.items()
            ]


class Histogram:
    """A histogram metric for tracking value distributions.

    Example:
        histogram = Histogram("attempt_duration_seconds", "Attempt duration")
        histogram.observe(0.5)
        histogram.observe(1.2, labels={"strategy": "targeted_fix"})
    """

    # Default buckets for timing (in seconds)
    DEFAULT_BUCKETS = (0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf"))

    def __init__(
        self,
        name: str,
        help_text: str = "",
        buckets: tuple[float, ...] | None = None,
    ) -> None:
        self.name = name
        self.help_text = help_text
        self._buckets = buckets or self.DEFAULT_BUCKETS
        self._observations: dict[tuple[tuple[str, str], ...], list[float]] = defaultdict(list)
        self._lock = Lock()

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        """Record an observation."""
        with self._lock:
            self._observations[_label_key(labels)].append(value)

    def get_stats(self, labels: dict[str, str] | None = None) -> dict[str, float]:
        """Get histogram statistics.

        Returns:
            Dictionary with count, sum, min, max, mean
        """
        with self._lock:
            values = list(self._observations.get(_label_key(labels), []))

        if not values:
            return {"count": 0, "sum": 0, "min": 0, "max": 0, "mean": 0}

        return {
            "count": len(values),
            "sum": sum(values),
            "min": min(values),
            "max": max(values),
            "mean": sum(values) / len(values),
        }

    def get_buckets(self, labels: dict[str, str] | None = None) -> dict[float, int]:
        """Get bucket counts.

        Returns:
            Dictionary mapping bucket boundary to count
        """
        with self._lock:
            values = list(self._observations.get(_label_key(labels), []))

        bucket_counts: dict[float, int] = dict.fromkeys(self._buckets, 0)
        for value in values:
            for bucket in self._buckets:
                if value <= bucket:
                    bucket_counts[bucket] += 1
                    break

        return bucket_counts


class MetricsRegistry:
    """Registry for all metrics of one correction engine.

    Example:
        registry = MetricsRegistry()
        registry.errors_detected.inc(labels={"type": "syntax_error"})
        metrics = registry.get_all_metrics()
    """

    PREFIX = "self_correction"

    def __init__(self) -> None:
        """Initialize the metrics registry."""
        # Detection
        self.errors_detected = Counter(
            f"{self.PREFIX}_errors_detected_total",
            "Total errors detected in content",
        )

        # Attempts
        self.attempts_started = Counter(
            f"{self.PREFIX}_attempts_started_total",
            "Total correction attempts started",
        )
        self.attempts_succeeded = Counter(
            f"{self.PREFIX}_attempts_succeeded_total",
            "Total correction attempts that succeeded",
        )
        self.attempts_failed = Counter(
            f"{self.PREFIX}_attempts_failed_total",
            "Total correction attempts that failed",
        )
        self.attempts_rejected = Counter(
            f"{self.PREFIX}_attempts_rejected_total",
            "Total correction requests rejected by attempt limits",
        )

        # Sessions
        self.sessions_created = Counter(
            f"{self.PREFIX}_sessions_created_total",
            "Total correction sessions created",
        )
        self.sessions_completed = Counter(
            f"{self.PREFIX}_sessions_completed_total",
            "Total correction sessions that completed successfully",
        )
        self.sessions_failed = Counter(
            f"{self.PREFIX}_sessions_failed_total",
            "Total correction sessions that ended in failure",
        )
        self.active_sessions = Gauge(
            f"{self.PREFIX}_active_sessions",
            "Number of currently active sessions",
        )

        # Events
        self.listener_errors = Counter(
            f"{self.PREFIX}_listener_errors_total",
            "Total exceptions raised by event listeners",
        )

        # Durations
        self.attempt_duration = Histogram(
            f"{self.PREFIX}_attempt_duration_seconds",
            "Correction attempt duration in seconds",
        )

        self._start_time = time.time()

    def get_uptime_seconds(self) -> float:
        """Get registry uptime in seconds."""
        return time.time() - self._start_time

    def get_all_metrics(self) -> dict[str, Any]:
        """Get all metrics as a dictionary."""
        return {
            "uptime_seconds": self.get_uptime_seconds(),
            "detection": {
                "errors_detected": self.errors_detected.total(),
            },
            "attempts": {
                "started": self.attempts_started.total(),
                "succeeded": self.attempts_succeeded.total(),
                "failed": self.attempts_failed.total(),
                "rejected": self.attempts_rejected.total(),
                "duration_stats": self.attempt_duration.get_stats(),
            },
            "sessions": {
                "created": self.sessions_created.get(),
                "completed": self.sessions_completed.get(),
                "failed": self.sessions_failed.get(),
                "active": self.active_sessions.get(),
            },
            "events": {
                "listener_errors": self.listener_errors.get(),
            },
        }

    def to_prometheus_format(self) -> str:
        """Export metrics in Prometheus text format."""
        lines: list[str] = []

        series: list[tuple[Counter | Gauge, str]] = [
            (self.errors_detected, "counter"),
            (self.attempts_started, "counter"),
            (self.attempts_succeeded, "counter"),
            (self.attempts_failed, "counter"),
            (self.attempts_rejected, "counter"),
            (self.sessions_created, "counter"),
            (self.sessions_completed, "counter"),
            (self.sessions_failed, "counter"),
            (self.listener_errors, "counter"),
            (self.active_sessions, "gauge"),
        ]
        for metric, metric_type in series:
            if metric.help_text:
                lines.append(f"# HELP {metric.name} {metric.help_text}")
            lines.append(f"# TYPE {metric.name} {metric_type}")
            for value in metric.get_all():
                if value.labels:
                    label_str = ",".join(f'{k}="{v}"' for k, v in value.labels.items())
                    lines.append(f"{metric.name}{{{label_str}}} {value.value}")
                else:
                    lines.append(f"{metric.name} {value.value}")

        lines.append(f"# HELP {self.PREFIX}_uptime_seconds Engine uptime in seconds")
        lines.append(f"# TYPE {self.PREFIX}_uptime_seconds gauge")
        lines.append(f"{self.PREFIX}_uptime_seconds {self.get_uptime_seconds()}")

        return "\n".join(lines)


class Timer:
    """Context manager for timing operations.

    Example:
        with Timer(metrics.attempt_duration, labels={"strategy": "targeted_fix"}):
            await corrector(error, content, strategy)
    """

    def __init__(
        self,
        histogram: Histogram,
        labels: dict[str, str] | None = None,
    ) -> None:
        self._histogram = histogram
        self._labels = labels
        self._start: float | None = None

    def __enter__(self) -> Timer:
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        if self._start is not None:
            duration = time.perf_counter() - self._start
            self._histogram.observe(duration, labels=self._labels)
