"""Async SQLAlchemy connection and session handling for the transaction store."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from payment_relay.datastore.engines import build_engine
from payment_relay.datastore.models import Base

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from payment_relay.config.settings import DatabaseConfig

logger = logging.getLogger(__name__)

_ERR_NOT_CONNECTED = "Datastore is not connected. Call connect() first."


class Datastore:
    """Owns the engine and hands out sessions.

    Usage::

        store = Datastore(config.db)
        await store.connect()
        async with store.transaction() as session:
            session.add(record)
        await store.disconnect()
    """

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

    @property
    def connected(self) -> bool:
        """Whether :meth:`connect` has run and :meth:`disconnect` has not."""
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        """The live engine.

        Raises:
            RuntimeError: If not connected.
        """
        if self._engine is None:
            raise RuntimeError(_ERR_NOT_CONNECTED)
        return self._engine

    async def connect(self, *, create_schema: bool = True) -> None:
        """Build the engine; create the transaction table unless told not to."""
        engine = build_engine(self._config)
        self._engine = engine
        # Records stay readable after commit; repositories return them to callers.
        self._sessions = async_sessionmaker(engine, expire_on_commit=False)
        if create_schema:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        logger.info("Datastore connected (%s)", engine.dialect.name)

    async def disconnect(self) -> None:
        """Dispose the engine. Safe to call when not connected."""
        engine, self._engine, self._sessions = self._engine, None, None
        if engine is not None:
            await engine.dispose()
            logger.info("Datastore disconnected")

    def session(self) -> AsyncSession:
        """New session for reads; use it as an async context manager.

        Raises:
            RuntimeError: If not connected.
        """
        if self._sessions is None:
            raise RuntimeError(_ERR_NOT_CONNECTED)
        return self._sessions()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Session that commits on success and rolls back on error."""
        async with self.session() as session, session.begin():
            yield session
