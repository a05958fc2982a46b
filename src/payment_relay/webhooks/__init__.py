"""Webhooks — signature verification, recent event cache and the inbound pipeline."""

from __future__ import annotations

from payment_relay.webhooks.cache import EventCache
from payment_relay.webhooks.events import VerifiedEvent
from payment_relay.webhooks.processor import WebhookProcessor
from payment_relay.webhooks.verifier import SIGNATURE_HEADER, sign, verify

__all__ = [
    "SIGNATURE_HEADER",
    "EventCache",
    "VerifiedEvent",
    "WebhookProcessor",
    "sign",
    "verify",
]
