"""Metrics fan-out — prefix payment metrics and forward them to every sink.

Emission never blocks the caller: each sink call runs as its own task on
the running event loop. A sink failure is logged and does not affect other
sinks or later emissions.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from payment_relay.metrics.sinks import MetricsSink

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "stripe.payment"


class MetricKind(enum.StrEnum):
    """Kind of metric value."""

    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"


_SINK_METHODS: dict[MetricKind, str] = {
    MetricKind.COUNTER: "emit_counter",
    MetricKind.GAUGE: "emit_gauge",
    MetricKind.HISTOGRAM: "emit_histogram",
}


async def _deliver(
    sink: MetricsSink,
    method: str,
    full_name: str,
    value: float,
    tags: dict[str, str] | None,
) -> None:
    """Call one sink method; plain-def sinks are accepted as well as coroutines."""
    result = getattr(sink, method)(full_name, value, tags)
    if inspect.isawaitable(result):
        await result


class MetricsFanout:
    """Emit named metrics to a set of sinks.

    Usage::

        metrics = MetricsFanout([LoggingMetricsSink()], prefix="stripe.payment")
        metrics.increment_counter("created.count")
        metrics.record_amount("created.amount", 2000, "USD")

    Args:
        sinks: Destinations for every emission.
        enabled: When ``False`` every emission is a no-op.
        prefix: Prepended to every metric name with a ``.`` separator.
        log_metrics: Log each emission at DEBUG level.
    """

    def __init__(
        self,
        sinks: Iterable[MetricsSink] = (),
        *,
        enabled: bool = True,
        prefix: str = DEFAULT_PREFIX,
        log_metrics: bool = False,
    ) -> None:
        self._sinks: list[MetricsSink] = list(sinks)
        self._enabled = enabled
        self._prefix = prefix
        self._log_metrics = log_metrics
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def enabled(self) -> bool:
        """Whether emissions reach the sinks."""
        return self._enabled

    @property
    def sinks(self) -> list[MetricsSink]:
        """Registered sinks."""
        return list(self._sinks)

    def add_sink(self, sink: MetricsSink) -> None:
        """Register another sink."""
        self._sinks.append(sink)

    def full_name(self, name: str) -> str:
        """Return *name* qualified with the configured prefix."""
        return f"{self._prefix}.{name}" if self._prefix else name

    def emit(
        self,
        kind: MetricKind,
        name: str,
        value: float,
        tags: Mapping[str, str] | None = None,
    ) -> None:
        """Schedule delivery of one metric value to every sink."""
        if not self._enabled or not self._sinks:
            return

        full_name = self.full_name(name)
        if self._log_metrics:
            logger.debug("%s: %s = %s %s", kind.capitalize(), full_name, value, dict(tags or {}))

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; dropping metric %s", full_name)
            return

        method = _SINK_METHODS[kind]
        frozen_tags = dict(tags) if tags else None
        for sink in self._sinks:
            task = loop.create_task(_deliver(sink, method, full_name, value, frozen_tags))
            self._pending.add(task)
            task.add_done_callback(self._on_done(sink, full_name))

    def increment_counter(
        self, name: str, value: int = 1, tags: Mapping[str, str] | None = None
    ) -> None:
        """Increase counter *name* by *value*."""
        self.emit(MetricKind.COUNTER, name, value, tags)

    def record_gauge(self, name: str, value: float, tags: Mapping[str, str] | None = None) -> None:
        """Set gauge *name* to *value*."""
        self.emit(MetricKind.GAUGE, name, value, tags)

    def record_histogram(
        self, name: str, value: float, tags: Mapping[str, str] | None = None
    ) -> None:
        """Observe *value* on histogram *name*."""
        self.emit(MetricKind.HISTOGRAM, name, value, tags)

    def record_amount(
        self,
        name: str,
        amount: int,
        currency: str,
        tags: Mapping[str, str] | None = None,
    ) -> None:
        """Observe a monetary amount (minor units) tagged with its currency.

        The ``currency`` tag is always lower-cased and overrides any
        ``currency`` key in *tags*.
        """
        enhanced = dict(tags or {})
        enhanced["currency"] = currency.lower()
        self.emit(MetricKind.HISTOGRAM, name, amount, enhanced)

    async def drain(self) -> None:
        """Wait for every in-flight sink call to finish."""
        while self._pending:
            tasks = list(self._pending)
            await asyncio.gather(*tasks, return_exceptions=True)
            self._pending.difference_update(tasks)

    def _on_done(
        self, sink: MetricsSink, full_name: str
    ) -> Callable[[asyncio.Task[None]], None]:
        def _callback(task: asyncio.Task[None]) -> None:
            self._pending.discard(task)
            if task.cancelled():
                return
            exc = task.exception()
            if exc is not None:
                logger.warning(
                    "Metrics sink %s failed emitting %s: %s",
                    type(sink).__name__,
                    full_name,
                    exc,
                )

        return _callback
