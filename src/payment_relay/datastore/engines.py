"""Async engine construction for the transaction store.

SQLite (aiosqlite) runs without a connection pool; server databases
(asyncpg) get a bounded pool sized from ``DatabaseConfig``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

if TYPE_CHECKING:
    from payment_relay.config.settings import DatabaseConfig


def pool_options(config: DatabaseConfig) -> dict[str, Any]:
    """Pool keyword arguments for *config*'s backend (empty for SQLite)."""
    if make_url(config.dsn).get_backend_name() == "sqlite":
        return {}
    idle = config.max_idle_connections
    return {
        "pool_size": idle,
        "max_overflow": max(config.max_open_connections - idle, 0),
        "pool_pre_ping": True,
    }


def build_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create the async engine described by *config*."""
    return create_async_engine(config.dsn, echo=config.debug_sql, **pool_options(config))
