"""Metrics collection for observability.

Counters, gauges and histograms for the webhook pipeline, exportable in
the Prometheus text format from the ``/metrics`` endpoint.
"""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from enum import StrEnum
from threading import Lock
from typing import Any

import structlog

log = structlog.get_logger()

LabelKey = tuple[tuple[str, str], ...]


def _label_key(labels: dict[str, str] | None) -> LabelKey:
    return tuple(sorted(labels.items())) if labels else ()


def _format_labels(labels: dict[str, str]) -> str:
    if not labels:
        return ""
    return "{" + ",".join(f'{k}="{v}"' for k, v in labels.items()) + "}"


class MetricType(StrEnum):
    """Types of metrics."""

    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"


@dataclass
class MetricValue:
    """A single metric value with its labels."""

    name: str
    type: MetricType
    value: float
    labels: dict[str, str] = field(default_factory=dict)
    help_text: str = ""


class Counter:
    """A monotonically increasing counter.

    Example:
        counter = Counter("events_received_total", "Webhook deliveries received")
        counter.inc()
        counter.inc(labels={"event_type": "issues"})
    """

    type = MetricType.COUNTER

    def __init__(self, name: str, help_text: str = "") -> None:
        self.name = name
        self.help_text = help_text
        self._values: dict[LabelKey, float] = defaultdict(float)
        self._lock = Lock()

    def inc(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        """Increment the counter.

        Raises:
            ValueError: If value is negative.
        """
        if value < 0:
            raise ValueError("Counter can only increase")

        with self._lock:
            self._values[_label_key(labels)] += value

    def get(self, labels: dict[str, str] | None = None) -> float:
        """Get the value for one label set (the unlabeled series by default)."""
        with self._lock:
            return self._values.get(_label_key(labels), 0)

    def total(self) -> float:
        """Sum over every label set."""
        with self._lock:
            return sum(self._values.values())

    def get_all(self) -> list[MetricValue]:
        """Get all values with their labels."""
        with self._lock:
            return [
                MetricValue(
                    name=self.name,
                    type=self.type,
                    value=value,
                    labels=dict(label_key),
                    help_text=self.help_text,
                )
                for label_key, value in self._values.items()
            ]


class Gauge(Counter):
    """A metric that can go up or down."""

    type = MetricType.GAUGE

    def inc(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        with self._lock:
            self._values[_label_key(labels)] += value

    def dec(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        with self._lock:
            self._values[_label_key(labels)] -= value

    def set(self, value: float, labels: dict[str, str] | None = None) -> None:
        with self._lock:
            self._values[_label_key(labels)] = value


class Histogram:
    """A histogram metric for tracking value distributions.

    Example:
        histogram = Histogram("processing_duration_seconds", "Processing duration")
        histogram.observe(0.5)
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
        self._observations: dict[LabelKey, list[float]] = defaultdict(list)
        self._lock = Lock()

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        """Record an observation."""
        with self._lock:
            self._observations[_label_key(labels)].append(value)

    def get_stats(self, labels: dict[str, str] | None = None) -> dict[str, float]:
        """Get count, sum, min, max and mean for one label set."""
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
        """Get cumulative bucket counts (Prometheus ``le`` semantics)."""
        with self._lock:
            values = list(self._observations.get(_label_key(labels), []))

        return {bucket: sum(1 for v in values if v <= bucket) for bucket in self._buckets}


class MetricsRegistry:
    """Registry for all bridge metrics.

    A process-wide singleton; tests create their own instance and hand it
    to the components they exercise.

    Example:
        registry = MetricsRegistry.get_instance()
        registry.events_received.inc(labels={"event_type": "issues"})
        text = registry.to_prometheus_format()
    """

    _instance: MetricsRegistry | None = None
    _lock = Lock()

    def __init__(self) -> None:
        # Inbound
        self.events_received = Counter(
            "gh_chat_bridge_events_received_total",
            "Webhook deliveries received",
        )
        self.events_rejected = Counter(
            "gh_chat_bridge_events_rejected_total",
            "Webhook deliveries rejected before processing",
        )
        self.events_parsed = Counter(
            "gh_chat_bridge_events_parsed_total",
            "Webhook deliveries parsed, by event kind",
        )

        # Routing
        self.routes_emitted = Counter(
            "gh_chat_bridge_routes_emitted_total",
            "Messages selected for delivery, by rule",
        )
        self.events_filtered = Counter(
            "gh_chat_bridge_events_filtered_total",
            "Events that produced no message",
        )
        self.alerts_suppressed = Counter(
            "gh_chat_bridge_alerts_suppressed_total",
            "Good-first-issue alerts suppressed as duplicates",
        )

        # Delivery
        self.deliveries = Counter(
            "gh_chat_bridge_deliveries_total",
            "Delivery outcomes, by outcome",
        )
        self.delivery_retries = Counter(
            "gh_chat_bridge_delivery_retries_total",
            "Delivery attempts retried after a transient failure",
        )
        self.deliveries_failed = Counter(
            "gh_chat_bridge_deliveries_failed_total",
            "Deliveries abandoned after a permanent failure or exhausted retries",
        )

        # Errors
        self.pipeline_errors = Counter(
            "gh_chat_bridge_pipeline_errors_total",
            "Unexpected errors caught at the per-event boundary",
        )

        self.in_flight = Gauge(
            "gh_chat_bridge_in_flight_events",
            "Events currently being routed or delivered",
        )

        self.processing_duration = Histogram(
            "gh_chat_bridge_processing_duration_seconds",
            "Time from acceptance to the last delivery of an event",
        )

        self._start_time = time.time()

    @classmethod
    def get_instance(cls) -> MetricsRegistry:
        """Get the singleton metrics registry instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_uptime_seconds(self) -> float:
        return time.time() - self._start_time

    def _series(self) -> list[Counter]:
        return [
            self.events_received,
            self.events_rejected,
            self.events_parsed,
            self.routes_emitted,
            self.events_filtered,
            self.alerts_suppressed,
            self.deliveries,
            self.delivery_retries,
            self.deliveries_failed,
            self.pipeline_errors,
            self.in_flight,
        ]

    def get_all_metrics(self) -> dict[str, Any]:
        """Get a summary of all metrics as a dictionary."""
        return {
            "uptime_seconds": self.get_uptime_seconds(),
            "events": {
                "received": self.events_received.total(),
                "rejected": self.events_rejected.total(),
                "parsed": self.events_parsed.total(),
                "filtered": self.events_filtered.total(),
            },
            "routing": {
                "routes": self.routes_emitted.total(),
                "alerts_suppressed": self.alerts_suppressed.total(),
            },
            "delivery": {
                "delivered": self.deliveries.get({"outcome": "delivered"}),
                "failed": self.deliveries_failed.total(),
                "retries": self.delivery_retries.total(),
            },
            "errors": self.pipeline_errors.total(),
            "in_flight": self.in_flight.get(),
            "duration_stats": self.processing_duration.get_stats(),
        }

    def to_prometheus_format(self) -> str:
        """Export metrics in Prometheus text format."""
        lines: list[str] = []

        for metric in self._series():
            if metric.help_text:
                lines.append(f"# HELP {metric.name} {metric.help_text}")
            lines.append(f"# TYPE {metric.name} {metric.type.value}")
            for value in metric.get_all():
                lines.append(f"{metric.name}{_format_labels(value.labels)} {value.value}")

        histogram = self.processing_duration
        lines.append(f"# HELP {histogram.name} {histogram.help_text}")
        lines.append(f"# TYPE {histogram.name} histogram")
        for bucket, count in histogram.get_buckets().items():
            le = "+Inf" if bucket == float("inf") else str(bucket)
            lines.append(f'{histogram.name}_bucket{{le="{le}"}} {count}')
        stats = histogram.get_stats()
        lines.append(f"{histogram.name}_sum {stats['sum']}")
        lines.append(f"{histogram.name}_count {stats['count']}")

        lines.append("# HELP gh_chat_bridge_uptime_seconds Bridge uptime in seconds")
        lines.append("# TYPE gh_chat_bridge_uptime_seconds gauge")
        lines.append(f"gh_chat_bridge_uptime_seconds {self.get_uptime_seconds()}")

        return "\n".join(lines) + "\n"


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry."""
    return MetricsRegistry.get_instance()


class Timer:
    """Context manager for timing operations.

    Example:
        with Timer(metrics.processing_duration):
            await pipeline.process(event)
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
