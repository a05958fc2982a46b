"""Real-time fan-out of payment updates to subscribed WebSocket clients."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from payment_relay.realtime.registry import Connection, ConnectionRegistry

logger = logging.getLogger(__name__)

DEFAULT_SEND_TIMEOUT = 5.0


def build_update_message(subject_id: str, payload: Any) -> str:
    """Serialize an update frame for *subject_id*."""
    return json.dumps(
        {"type": "update", "subjectId": subject_id, "payload": payload},
        default=str,
    )


class RealtimeNotifier:
    """Push updates to every open connection subscribed to a subject.

    Delivery is best-effort: a connection that is not open, or whose send
    fails, is skipped for this update. Dead connections are removed by their
    own receive loop, not here.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
    ) -> None:
        self._registry = registry
        self._send_timeout = send_timeout

    @property
    def registry(self) -> ConnectionRegistry:
        """The registry subscribers are looked up in."""
        return self._registry

    async def notify(self, subject_id: str, payload: Any) -> int:
        """Send *payload* to every subscriber of *subject_id*.

        Returns:
            Number of connections the update was delivered to.
        """
        connections = [c for c in self._registry.subscribers(subject_id) if c.is_open]
        if not connections:
            logger.debug("No subscribers for payment update %s", subject_id)
            return 0

        message = build_update_message(subject_id, payload)
        logger.info(
            "Notifying %d subscriber(s) of payment update %s", len(connections), subject_id
        )
        results = await asyncio.gather(
            *(self._deliver(connection, subject_id, message) for connection in connections)
        )
        return sum(results)

    async def _deliver(self, connection: Connection, subject_id: str, message: str) -> bool:
        try:
            async with asyncio.timeout(self._send_timeout):
                await connection.transport.send_text(message)
        except Exception:
            logger.warning(
                "Failed to send payment update %s to connection %s",
                subject_id,
                connection.connection_id,
                exc_info=True,
            )
            return False
        return True
