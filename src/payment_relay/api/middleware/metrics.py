"""HTTP request metrics for the relay API.

Series (registered on the relay's Prometheus registry):
- ``payment_relay_http_requests_total{method, route, status}``
- ``payment_relay_http_request_duration_seconds{method, route}``

``route`` is the matched path template (``/api/stripe/status/{payment_intent_id}``),
so payment ids never become label values. Unrouted requests use ``unmatched``.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from prometheus_client import CollectorRegistry
    from starlette.requests import Request
    from starlette.responses import Response
    from starlette.types import ASGIApp

UNMATCHED_ROUTE = "unmatched"


def route_template(request: Request) -> str:
    """Path template of the route that served *request*."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_ROUTE


class RequestMetrics:
    """Request counter and latency histogram bound to one registry."""

    def __init__(self, registry: CollectorRegistry) -> None:
        self.requests = Counter(
            "payment_relay_http_requests",
            "HTTP requests served by the relay API",
            ("method", "route", "status"),
            registry=registry,
        )
        self.latency = Histogram(
            "payment_relay_http_request_duration_seconds",
            "Time spent serving relay API requests",
            ("method", "route"),
            registry=registry,
        )

    def observe(self, method: str, route: str, status: int, seconds: float) -> None:
        self.requests.labels(method=method, route=route, status=str(status)).inc()
        self.latency.labels(method=method, route=route).observe(seconds)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Record every HTTP request; an unhandled exception counts as a 500."""

    def __init__(self, app: ASGIApp, *, registry: CollectorRegistry) -> None:
        super().__init__(app)
        self._metrics = RequestMetrics(registry)

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        started = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            self._metrics.observe(
                request.method,
                route_template(request),
                status,
                time.perf_counter() - started,
            )
