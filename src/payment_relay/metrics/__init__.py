"""Metrics — payment metric fan-out, sinks and Prometheus collectors."""

from __future__ import annotations

from payment_relay.metrics.collector import MetricsCollector, RelayMetrics
from payment_relay.metrics.fanout import MetricKind, MetricsFanout
from payment_relay.metrics.listener import MetricsEventListener
from payment_relay.metrics.sinks import LoggingMetricsSink, MetricsSink, PrometheusMetricsSink

__all__ = [
    "LoggingMetricsSink",
    "MetricKind",
    "MetricsCollector",
    "MetricsEventListener",
    "MetricsFanout",
    "MetricsSink",
    "PrometheusMetricsSink",
    "RelayMetrics",
]
