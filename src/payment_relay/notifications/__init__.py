"""Notifications — in-process fan-out of webhook and payment events.

Provides:
- ``WebhookPublisher`` — callback, named-hook subscribers and handlers
- ``WebhookHandler`` / ``BaseWebhookHandler`` — handler contract
- ``PaymentEventPublisher`` — lifecycle events for local payment operations
"""

from __future__ import annotations

from payment_relay.notifications.handlers import BaseWebhookHandler, WebhookHandler
from payment_relay.notifications.listeners import (
    BasePaymentEventListener,
    DatabaseEventData,
    PaymentEventData,
    PaymentEventListener,
    PaymentEventPublisher,
    RefundEventData,
)
from payment_relay.notifications.publisher import (
    Hook,
    WebhookNotification,
    WebhookPublisher,
    resolve_hook,
)

__all__ = [
    "BasePaymentEventListener",
    "BaseWebhookHandler",
    "DatabaseEventData",
    "Hook",
    "PaymentEventData",
    "PaymentEventListener",
    "PaymentEventPublisher",
    "RefundEventData",
    "WebhookHandler",
    "WebhookNotification",
    "WebhookPublisher",
    "resolve_hook",
]
