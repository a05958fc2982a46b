"""Metric sinks — destinations for payment metrics.

A sink receives fully-qualified dotted names (``stripe.payment.created.count``)
and optional string tags.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from prometheus_client import Counter, Gauge, Histogram

from payment_relay.metrics.collector import MetricsCollector

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_:]")

# Minor currency units (cents): 1.00 to 10,000.00
AMOUNT_BUCKETS = (100, 500, 1_000, 2_500, 5_000, 10_000, 50_000, 100_000, 1_000_000)


@runtime_checkable
class MetricsSink(Protocol):
    """Destination for counter, gauge and histogram values."""

    async def emit_counter(
        self, name: str, value: int, tags: Mapping[str, str] | None = None
    ) -> None: ...

    async def emit_gauge(
        self, name: str, value: float, tags: Mapping[str, str] | None = None
    ) -> None: ...

    async def emit_histogram(
        self, name: str, value: float, tags: Mapping[str, str] | None = None
    ) -> None: ...


def format_tags(tags: Mapping[str, str] | None) -> str:
    """Render tags as `` [k=v, k=v]``, or an empty string."""
    if not tags:
        return ""
    return " [" + ", ".join(f"{k}={v}" for k, v in tags.items()) + "]"


class LoggingMetricsSink:
    """Write every metric as an INFO log line."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    async def emit_counter(
        self, name: str, value: int, tags: Mapping[str, str] | None = None
    ) -> None:
        self._log.info("METRIC [Counter] %s=%s%s", name, value, format_tags(tags))

    async def emit_gauge(
        self, name: str, value: float, tags: Mapping[str, str] | None = None
    ) -> None:
        self._log.info("METRIC [Gauge] %s=%s%s", name, value, format_tags(tags))

    async def emit_histogram(
        self, name: str, value: float, tags: Mapping[str, str] | None = None
    ) -> None:
        self._log.info("METRIC [Histogram] %s=%s%s", name, value, format_tags(tags))


def prometheus_name(name: str) -> str:
    """Convert a dotted metric name to a valid Prometheus name."""
    converted = _INVALID_NAME_CHARS.sub("_", name)
    if converted and converted[0].isdigit():
        converted = f"_{converted}"
    return converted


class PrometheusMetricsSink:
    """Expose payment metrics through a ``prometheus_client`` registry.

    Each metric's label names are fixed by the first emission; later tags
    missing a label report it as ``""`` and unknown tag keys are ignored.
    Amount histograms (``*.amount``) use :data:`AMOUNT_BUCKETS`.
    """

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()
        self._metrics: dict[str, tuple[Counter | Gauge | Histogram, tuple[str, ...]]] = {}
        self._lock = threading.Lock()

    @property
    def collector(self) -> MetricsCollector:
        """Return the collector whose registry holds the sink's series."""
        return self._collector

    async def emit_counter(
        self, name: str, value: int, tags: Mapping[str, str] | None = None
    ) -> None:
        metric, labels = self._get_or_create("counter", name, tags)
        self._bind(metric, labels, tags).inc(value)  # type: ignore[union-attr]

    async def emit_gauge(
        self, name: str, value: float, tags: Mapping[str, str] | None = None
    ) -> None:
        metric, labels = self._get_or_create("gauge", name, tags)
        self._bind(metric, labels, tags).set(value)  # type: ignore[union-attr]

    async def emit_histogram(
        self, name: str, value: float, tags: Mapping[str, str] | None = None
    ) -> None:
        metric, labels = self._get_or_create("histogram", name, tags)
        self._bind(metric, labels, tags).observe(value)  # type: ignore[union-attr]

    def _get_or_create(
        self, kind: str, name: str, tags: Mapping[str, str] | None
    ) -> tuple[Counter | Gauge | Histogram, tuple[str, ...]]:
        prom_name = prometheus_name(name)
        key = f"{kind}:{prom_name}"
        with self._lock:
            existing = self._metrics.get(key)
            if existing is not None:
                return existing
            labels = tuple(sorted(prometheus_name(k) for k in (tags or {})))
            doc = f"Payment metric {name}"
            metric: Counter | Gauge | Histogram
            if kind == "counter":
                metric = self._collector.counter(prom_name, doc, labels)
            elif kind == "gauge":
                metric = self._collector.gauge(prom_name, doc, labels)
            else:
                buckets = AMOUNT_BUCKETS if name.endswith(".amount") else None
                metric = self._collector.histogram(prom_name, doc, labels, buckets)
            self._metrics[key] = (metric, labels)
            logger.debug("Registered Prometheus %s %s labels=%s", kind, prom_name, labels)
            return metric, labels

    @staticmethod
    def _bind(
        metric: Counter | Gauge | Histogram,
        labels: tuple[str, ...],
        tags: Mapping[str, str] | None,
    ) -> Counter | Gauge | Histogram:
        if not labels:
            return metric
        normalised = {prometheus_name(k): str(v) for k, v in (tags or {}).items()}
        return metric.labels(**{label: normalised.get(label, "") for label in labels})
