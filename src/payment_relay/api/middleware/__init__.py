"""API middleware — CORS and request metrics."""

from payment_relay.api.middleware.cors import setup_cors
from payment_relay.api.middleware.metrics import PrometheusMiddleware

__all__ = ["PrometheusMiddleware", "setup_cors"]
