"""Prometheus metrics for the transaction dispatcher.

Exported series (namespace ``assist``):

- ``assist_events_total{event_code}``: lifecycle events emitted
- ``assist_dispatch_total{outcome}``: confirmed, completed, failed, rejected
- ``assist_queue_size``: transactions in flight
- ``assist_preflight_seconds``: preflight duration
- ``assist_confirmation_seconds``: submission to first confirmation
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator

NAMESPACE = "assist"

# Confirmation times span block intervals, not request latencies.
_CONFIRMATION_BUCKETS = (1.0, 2.5, 5.0, 10.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0)


class MetricsCollector:
    """Creates metrics under one namespace in a private registry.

    Each collector owns its registry unless one is passed in, so several
    engines in one process never collide on series names.
    """

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        *,
        namespace: str = NAMESPACE,
    ) -> None:
        self._registry = registry if registry is not None else CollectorRegistry()
        self._namespace = namespace

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Create a namespaced counter."""
        return Counter(name, doc, labels, namespace=self._namespace, registry=self._registry)

    def gauge(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Gauge:
        """Create a namespaced gauge."""
        return Gauge(name, doc, labels, namespace=self._namespace, registry=self._registry)

    def histogram(
        self,
        name: str,
        doc: str,
        labels: tuple[str, ...] = (),
        *,
        buckets: tuple[float, ...] = Histogram.DEFAULT_BUCKETS,
    ) -> Histogram:
        """Create a namespaced histogram."""
        return Histogram(
            name,
            doc,
            labels,
            namespace=self._namespace,
            registry=self._registry,
            buckets=buckets,
        )


class AssistMetrics:
    """What the dispatcher records about each transaction."""

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        collector = collector or MetricsCollector()
        self._collector = collector

        self._events = collector.counter("events", "Lifecycle events by code", ("event_code",))
        self._outcomes = collector.counter("dispatch", "Dispatch outcomes", ("outcome",))
        self._in_flight = collector.gauge("queue_size", "Transactions currently queued")
        self._preflight = collector.histogram("preflight_seconds", "Preflight check duration")
        self._confirmation = collector.histogram(
            "confirmation_seconds",
            "Time from submission to first confirmation",
            buckets=_CONFIRMATION_BUCKETS,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._collector.registry

    def record_event(self, event_code: str) -> None:
        """Count one emitted lifecycle event."""
        self._events.labels(event_code=str(event_code)).inc()

    def record_outcome(self, outcome: str) -> None:
        """Count one dispatch outcome."""
        self._outcomes.labels(outcome=outcome).inc()

    def set_queue_size(self, size: int) -> None:
        """Set the in-flight transaction gauge."""
        self._in_flight.set(size)

    def observe_confirmation(self, seconds: float) -> None:
        """Record seconds from submission to first confirmation."""
        # Wall-clock skew can make the delta negative.
        self._confirmation.observe(max(seconds, 0.0))

    @contextmanager
    def track_preflight(self) -> Iterator[None]:
        """Time the enclosed preflight, whether it passes or raises."""
        started = time.perf_counter()
        try:
            yield
        finally:
            self._preflight.observe(time.perf_counter() - started)
