"""Live WebSocket connection registry with per-payment subscriptions.

The registry owns two structures guarded by one lock:

- ``connection_id -> Connection``
- ``subject_id -> {connection_id, ...}`` (subscription index)

Invariant: every id in any subscription set has a live ``Connection``.
``unregister`` removes a connection and all of its memberships in a single
critical section. No I/O happens while the lock is held.
"""

from __future__ import annotations

import enum
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from payment_relay.errors import ConnectionNotFoundError

if TYPE_CHECKING:
    from starlette.types import Message

logger = logging.getLogger(__name__)


@runtime_checkable
class Transport(Protocol):
    """Bidirectional message transport (Starlette ``WebSocket`` satisfies this)."""

    async def send_text(self, data: str) -> None: ...
    async def receive(self) -> Message: ...
    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...


class ConnectionState(enum.StrEnum):
    """Lifecycle state of a registered connection."""

    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """A registered transport and its lifecycle state."""

    connection_id: str
    transport: Transport
    state: ConnectionState = ConnectionState.OPEN

    @property
    def is_open(self) -> bool:
        """Whether delivery should be attempted."""
        return self.state is ConnectionState.OPEN


class ConnectionRegistry:
    """Thread-safe registry of live connections and their subscriptions.

    Usage::

        registry = ConnectionRegistry()
        cid = registry.register(websocket)
        registry.subscribe(cid, "pi_123")
        ...
        registry.unregister(cid)
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._subscriptions: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def register(self, transport: Transport) -> str:
        """Store *transport* as an open connection and return its new id."""
        connection_id = str(uuid.uuid4())
        with self._lock:
            self._connections[connection_id] = Connection(connection_id, transport)
        logger.info("WebSocket connection registered: %s", connection_id)
        return connection_id

    def subscribe(self, connection_id: str, subject_id: str) -> None:
        """Add *connection_id* to *subject_id*'s subscribers (idempotent).

        Raises:
            ConnectionNotFoundError: If the connection is not registered.
        """
        with self._lock:
            if connection_id not in self._connections:
                raise ConnectionNotFoundError(connection_id)
            self._subscriptions.setdefault(subject_id, set()).add(connection_id)

    def unsubscribe(self, connection_id: str, subject_id: str) -> bool:
        """Remove the membership; returns whether one existed."""
        with self._lock:
            members = self._subscriptions.get(subject_id)
            if members is None or connection_id not in members:
                return False
            members.discard(connection_id)
            if not members:
                del self._subscriptions[subject_id]
            return True

    def unregister(self, connection_id: str) -> Connection | None:
        """Remove the connection and every subscription it holds.

        Safe to call more than once; returns the removed connection, if any.
        """
        with self._lock:
            connection = self._connections.pop(connection_id, None)
            empty: list[str] = []
            for subject_id, members in self._subscriptions.items():
                members.discard(connection_id)
                if not members:
                    empty.append(subject_id)
            for subject_id in empty:
                del self._subscriptions[subject_id]
            if connection is not None:
                connection.state = ConnectionState.CLOSED
        if connection is not None:
            logger.info("WebSocket connection unregistered: %s", connection_id)
        return connection

    def mark_closing(self, connection_id: str) -> None:
        """Flag a connection so fan-out stops delivering to it."""
        with self._lock:
            connection = self._connections.get(connection_id)
            if connection is not None and connection.state is ConnectionState.OPEN:
                connection.state = ConnectionState.CLOSING

    def get(self, connection_id: str) -> Connection | None:
        """Return the connection or ``None``."""
        with self._lock:
            return self._connections.get(connection_id)

    def subscribers(self, subject_id: str) -> list[Connection]:
        """Snapshot of connections subscribed to *subject_id*."""
        with self._lock:
            members = self._subscriptions.get(subject_id)
            if not members:
                return []
            return [self._connections[cid] for cid in members if cid in self._connections]

    def subscriptions(self, connection_id: str) -> set[str]:
        """Subjects *connection_id* is subscribed to."""
        with self._lock:
            return {
                subject_id
                for subject_id, members in self._subscriptions.items()
                if connection_id in members
            }

    def subject_count(self) -> int:
        """Number of subjects with at least one subscriber."""
        with self._lock:
            return len(self._subscriptions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        with self._lock:
            return connection_id in self._connections
