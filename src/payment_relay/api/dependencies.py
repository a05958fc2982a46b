"""FastAPI dependency injection helpers.

Usage in a route::

    @router.get("/health")
    async def health(engine: Annotated[RelayEngine, Depends(get_engine)]) -> ...:
        ...
"""

from __future__ import annotations

from fastapi import Request, WebSocket

from payment_relay.engine import RelayEngine  # noqa: TC001
from payment_relay.errors import ConfigurationError

_ERR_NO_ENGINE = "Relay engine is not running"


def get_engine(request: Request) -> RelayEngine:
    """Retrieve the engine from ``app.state``.

    The engine is stored on ``app.state.engine`` during lifespan startup.

    Raises:
        ConfigurationError: If the engine is not initialized (should never
        happen after startup).
    """
    engine: RelayEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        raise ConfigurationError(_ERR_NO_ENGINE)
    return engine


def get_ws_engine(websocket: WebSocket) -> RelayEngine:
    """WebSocket counterpart of :func:`get_engine`."""
    engine: RelayEngine | None = getattr(websocket.app.state, "engine", None)
    if engine is None:
        raise ConfigurationError(_ERR_NO_ENGINE)
    return engine
