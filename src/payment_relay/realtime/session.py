"""Per-connection WebSocket session.

Clients send control frames::

    {"action": "subscribe", "paymentId": "pi_123"}
    {"action": "unsubscribe", "paymentId": "pi_123"}

and receive acknowledgements::

    {"type": "subscribed", "paymentId": "pi_123"}
    {"type": "unsubscribed", "paymentId": "pi_123"}

Anything else, binary frames included, is logged and dropped. The connection
is unregistered on every exit path.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from starlette.websockets import WebSocketDisconnect

from payment_relay.errors import TransportError
from payment_relay.utils import sanitize_for_log

if TYPE_CHECKING:
    from payment_relay.realtime.registry import ConnectionRegistry, Transport

logger = logging.getLogger(__name__)

ACTION_SUBSCRIBE = "subscribe"
ACTION_UNSUBSCRIBE = "unsubscribe"


def parse_control_message(text: str) -> tuple[str, str] | None:
    """Return ``(action, payment_id)`` for a valid control frame, else ``None``."""
    try:
        message: Any = json.loads(text)
    except ValueError:
        return None
    if not isinstance(message, dict):
        return None
    action = message.get("action")
    payment_id = message.get("paymentId")
    if action not in (ACTION_SUBSCRIBE, ACTION_UNSUBSCRIBE):
        return None
    if not isinstance(payment_id, str) or not payment_id:
        return None
    return action, payment_id


class ConnectionSession:
    """Drive one accepted WebSocket from registration to teardown.

    Args:
        registry: Registry the connection and its subscriptions live in.
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry

    async def run(self, transport: Transport) -> None:
        """Register *transport*, serve control frames until it closes."""
        connection_id = self._registry.register(transport)
        try:
            await self._receive_loop(connection_id, transport)
        except WebSocketDisconnect as exc:
            logger.info("WebSocket %s disconnected (code %s)", connection_id, exc.code)
        except TransportError:
            logger.warning("WebSocket %s transport failed", connection_id, exc_info=True)
        finally:
            self._registry.mark_closing(connection_id)
            self._registry.unregister(connection_id)

    async def _receive_loop(self, connection_id: str, transport: Transport) -> None:
        while True:
            try:
                message = await transport.receive()
            except RuntimeError as exc:
                # Starlette raises RuntimeError once the socket is no longer connected.
                msg = f"receive failed on connection {connection_id}: {exc}"
                raise TransportError(msg) from exc
            if message.get("type") == "websocket.disconnect":
                raise WebSocketDisconnect(
                    code=message.get("code", 1000), reason=message.get("reason")
                )
            text = message.get("text")
            if text is None:
                logger.warning("Dropping non-text WebSocket frame on %s", connection_id)
                continue
            await self._handle_message(connection_id, transport, text)

    async def _handle_message(self, connection_id: str, transport: Transport, text: str) -> None:
        parsed = parse_control_message(text)
        if parsed is None:
            logger.warning(
                "Dropping malformed WebSocket message on %s: %s",
                connection_id,
                sanitize_for_log(text[:200]),
            )
            return

        action, payment_id = parsed
        if action == ACTION_SUBSCRIBE:
            self._registry.subscribe(connection_id, payment_id)
            ack = "subscribed"
        else:
            self._registry.unsubscribe(connection_id, payment_id)
            ack = "unsubscribed"
        logger.info(
            "Connection %s %s payment %s", connection_id, ack, sanitize_for_log(payment_id)
        )

        try:
            await transport.send_text(json.dumps({"type": ack, "paymentId": payment_id}))
        except RuntimeError as exc:
            msg = f"send failed on connection {connection_id}: {exc}"
            raise TransportError(msg) from exc
