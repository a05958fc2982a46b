"""Tests for the per-connection WebSocket session."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest
from starlette.websockets import WebSocketDisconnect

from payment_relay.realtime.fanout import RealtimeNotifier
from payment_relay.realtime.registry import ConnectionRegistry
from payment_relay.realtime.session import (
    ACTION_SUBSCRIBE,
    ACTION_UNSUBSCRIBE,
    ConnectionSession,
    parse_control_message,
)


def _frame(action: str, payment_id: str) -> str:
    return json.dumps({"action": action, "paymentId": payment_id})


class TestParseControlMessage:
    def test_subscribe(self) -> None:
        assert parse_control_message(_frame("subscribe", "pi_1")) == (ACTION_SUBSCRIBE, "pi_1")

    def test_unsubscribe(self) -> None:
        assert parse_control_message(_frame("unsubscribe", "pi_1")) == (
            ACTION_UNSUBSCRIBE,
            "pi_1",
        )

    @pytest.mark.parametrize(
        "text",
        [
            "not json",
            "[]",
            '{"action": "subscribe"}',
            '{"action": "subscribe", "paymentId": ""}',
            '{"action": "subscribe", "paymentId": 42}',
            '{"action": "delete", "paymentId": "pi_1"}',
            '{"paymentId": "pi_1"}',
        ],
    )
    def test_malformed(self, text: str) -> None:
        assert parse_control_message(text) is None


class TestSession:
    async def test_subscribe_ack_then_disconnect_cleans_up(self, transport_factory: Any) -> None:
        registry = ConnectionRegistry()
        transport = transport_factory()
        transport.feed(_frame("subscribe", "pi_1"))
        transport.feed(WebSocketDisconnect(code=1000))

        await ConnectionSession(registry).run(transport)

        assert transport.sent_json() == [{"type": "subscribed", "paymentId": "pi_1"}]
        assert len(registry) == 0
        assert registry.subscribers("pi_1") == []

    async def test_unsubscribe_ack(self, transport_factory: Any) -> None:
        registry = ConnectionRegistry()
        transport = transport_factory()
        transport.feed(_frame("subscribe", "pi_1"))
        transport.feed(_frame("unsubscribe", "pi_1"))
        transport.feed(WebSocketDisconnect(code=1001))

        await ConnectionSession(registry).run(transport)

        assert [m["type"] for m in transport.sent_json()] == ["subscribed", "unsubscribed"]

    async def test_malformed_message_is_dropped(self, transport_factory: Any) -> None:
        registry = ConnectionRegistry()
        transport = transport_factory()
        transport.feed("garbage\r\nforged log line")
        transport.feed(_frame("subscribe", "pi_1"))
        transport.feed(WebSocketDisconnect(code=1000))

        await ConnectionSession(registry).run(transport)

        assert transport.sent_json() == [{"type": "subscribed", "paymentId": "pi_1"}]

    async def test_binary_frame_is_dropped(self, transport_factory: Any) -> None:
        registry = ConnectionRegistry()
        transport = transport_factory()
        transport.feed(b"\x00\x01garbage")
        transport.feed(_frame("subscribe", "pi_1"))
        transport.feed(WebSocketDisconnect(code=1000))

        await ConnectionSession(registry).run(transport)

        assert transport.sent_json() == [{"type": "subscribed", "paymentId": "pi_1"}]
        assert len(registry) == 0

    async def test_disconnect_message_ends_session(self, transport_factory: Any) -> None:
        registry = ConnectionRegistry()
        transport = transport_factory()
        transport.feed(_frame("subscribe", "pi_1"))
        transport.feed({"type": "websocket.disconnect", "code": 1001})

        await ConnectionSession(registry).run(transport)

        assert len(registry) == 0
        assert registry.subscribers("pi_1") == []

    async def test_receive_error_unregisters(self, transport_factory: Any) -> None:
        registry = ConnectionRegistry()
        transport = transport_factory()
        transport.feed(_frame("subscribe", "pi_1"))
        transport.feed(RuntimeError("WebSocket is not connected"))

        await ConnectionSession(registry).run(transport)

        assert len(registry) == 0
        assert registry.subject_count() == 0

    async def test_send_error_unregisters(self, transport_factory: Any) -> None:
        registry = ConnectionRegistry()
        transport = transport_factory(fail_send=True)
        transport.feed(_frame("subscribe", "pi_1"))

        await ConnectionSession(registry).run(transport)

        assert len(registry) == 0

    async def test_receives_updates_while_running(self, transport_factory: Any) -> None:
        registry = ConnectionRegistry()
        notifier = RealtimeNotifier(registry)
        transport = transport_factory()
        transport.feed(_frame("subscribe", "pi_7"))

        task = asyncio.create_task(ConnectionSession(registry).run(transport))
        for _ in range(100):
            if registry.subscribers("pi_7"):
                break
            await asyncio.sleep(0.01)

        delivered = await notifier.notify("pi_7", {"status": "succeeded"})
        transport.feed(WebSocketDisconnect(code=1000))
        await asyncio.wait_for(task, timeout=1)

        assert delivered == 1
        messages = transport.sent_json()
        assert messages[0]["type"] == "subscribed"
        assert messages[1] == {
            "type": "update",
            "subjectId": "pi_7",
            "payload": {"status": "succeeded"},
        }
        assert len(registry) == 0

    async def test_cancellation_unregisters(self, transport_factory: Any) -> None:
        registry = ConnectionRegistry()
        transport = transport_factory()
        task = asyncio.create_task(ConnectionSession(registry).run(transport))
        for _ in range(100):
            if len(registry):
                break
            await asyncio.sleep(0.01)
        assert len(registry) == 1

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(registry) == 0
