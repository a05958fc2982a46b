"""Realtime — WebSocket connections, subscriptions and payment update fan-out."""

from __future__ import annotations

from payment_relay.realtime.fanout import RealtimeNotifier, build_update_message
from payment_relay.realtime.registry import (
    Connection,
    ConnectionRegistry,
    ConnectionState,
    Transport,
)
from payment_relay.realtime.session import ConnectionSession, parse_control_message

__all__ = [
    "Connection",
    "ConnectionRegistry",
    "ConnectionSession",
    "ConnectionState",
    "RealtimeNotifier",
    "Transport",
    "build_update_message",
    "parse_control_message",
]
