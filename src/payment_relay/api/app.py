"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest
from starlette.responses import Response

from payment_relay import __version__
from payment_relay.api.middleware import PrometheusMiddleware, setup_cors
from payment_relay.api.routes import router, websocket_endpoint
from payment_relay.config.settings import AppConfig
from payment_relay.engine import RelayEngine
from payment_relay.errors import RelayError
from payment_relay.metrics.collector import RelayMetrics

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from payment_relay.payments.stripe import PaymentProvider

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run one RelayEngine for the lifetime of the app; closed even if startup fails."""
    config: AppConfig = app.state.config
    engine = RelayEngine(
        config,
        provider=app.state.provider,
        relay_metrics=app.state.relay_metrics,
    )

    try:
        await engine.initialize()
        app.state.engine = engine
        logger.info("Payment relay engine initialized")
        yield
    finally:
        await engine.close()
        app.state.engine = None
        logger.info("Payment relay engine shut down")


def create_app(
    *,
    config: AppConfig | None = None,
    provider: PaymentProvider | None = None,
) -> FastAPI:
    """Assemble the relay API: payment routes, the WebSocket, and /metrics.

    Args:
        config: Relay settings; read from the environment when omitted.
        provider: Payment backend to use instead of the HTTP Stripe client.
    """
    if config is None:
        config = AppConfig()

    app = FastAPI(
        title="payment-relay",
        version=__version__,
        description="Stripe payment webhook relay",
        lifespan=_lifespan,
    )

    app.state.config = config
    app.state.provider = provider
    app.state.relay_metrics = RelayMetrics()

    # -- Middleware --
    setup_cors(app, config.server.cors_origins)
    app.add_middleware(PrometheusMiddleware, registry=app.state.relay_metrics.registry)

    # -- Error handler --
    @app.exception_handler(RelayError)
    async def _relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.code, "message": exc.message},
        )

    # -- Base routes --
    @app.get("/metrics", tags=["base"], include_in_schema=False)
    async def metrics_endpoint() -> Response:
        engine: RelayEngine | None = getattr(app.state, "engine", None)
        if engine is not None:
            engine.refresh_gauges()
        return Response(
            content=generate_latest(app.state.relay_metrics.registry),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    # -- Payment relay API --
    app.include_router(router, prefix=config.server.base_path.rstrip("/"))
    app.add_api_websocket_route(config.server.websocket_path, websocket_endpoint)

    return app
