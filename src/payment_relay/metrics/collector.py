"""Metrics collector — Prometheus counters, gauges, histograms.

Relay-level series:
- ``payment_relay_webhooks_received_total`` counter (event type)
- ``payment_relay_webhooks_rejected_total`` counter (error code)
- ``payment_relay_webhook_processing_seconds`` histogram
- ``payment_relay_realtime_deliveries_total`` counter
- ``payment_relay_websocket_connections`` gauge
- ``payment_relay_cached_events`` gauge
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


_PREFIX = "payment_relay"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`RelayMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def gauge(self, name: str, doc: str, labels: Sequence[str] = ()) -> Gauge:
        """Register and return a Gauge."""
        return Gauge(name, doc, tuple(labels), registry=self._registry)

    def histogram(
        self,
        name: str,
        doc: str,
        labels: Sequence[str] = (),
        buckets: Sequence[float] | None = None,
    ) -> Histogram:
        """Register and return a Histogram."""
        if buckets is None:
            return Histogram(name, doc, tuple(labels), registry=self._registry)
        return Histogram(name, doc, tuple(labels), registry=self._registry, buckets=buckets)

    def counter(self, name: str, doc: str, labels: Sequence[str] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, tuple(labels), registry=self._registry)


class RelayMetrics:
    """High-level relay metrics for the webhook and WebSocket paths."""

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._received = self._collector.counter(
            f"{_PREFIX}_webhooks_received",
            "Verified webhook events accepted",
            ("event_type",),
        )
        self._rejected = self._collector.counter(
            f"{_PREFIX}_webhooks_rejected",
            "Inbound webhooks rejected during verification",
            ("code",),
        )
        self._processing = self._collector.histogram(
            f"{_PREFIX}_webhook_processing_seconds",
            "Duration of inbound webhook processing",
        )
        self._deliveries = self._collector.counter(
            f"{_PREFIX}_realtime_deliveries",
            "Payment updates delivered to WebSocket subscribers",
        )
        self._connections = self._collector.gauge(
            f"{_PREFIX}_websocket_connections",
            "Currently registered WebSocket connections",
        )
        self._cached = self._collector.gauge(
            f"{_PREFIX}_cached_events",
            "Events held in the recent event cache",
        )

    @property
    def collector(self) -> MetricsCollector:
        """Return the low-level collector (shared with the Prometheus sink)."""
        return self._collector

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    # -- Counters --

    def webhook_received(self, event_type: str) -> None:
        """Count an accepted webhook event."""
        self._received.labels(event_type=event_type).inc()

    def webhook_rejected(self, code: str) -> None:
        """Count a rejected webhook by error code."""
        self._rejected.labels(code=code).inc()

    def deliveries(self, count: int) -> None:
        """Count successful realtime deliveries."""
        if count > 0:
            self._deliveries.inc(count)

    # -- Gauges --

    def set_connection_count(self, count: int) -> None:
        """Set the current number of WebSocket connections."""
        self._connections.set(count)

    def set_cached_event_count(self, count: int) -> None:
        """Set the current number of cached events."""
        self._cached.set(count)

    # -- Operation trackers (context managers) --

    @contextmanager
    def track_webhook(self) -> Iterator[None]:
        """Track the duration of processing one inbound webhook."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._processing.observe(time.monotonic() - start)
