"""Webhook handler contract.

Implement ``WebhookHandler`` fully, or subclass ``BaseWebhookHandler`` and
override only the hooks you need; every base method is a no-op.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from payment_relay.webhooks.events import VerifiedEvent


@runtime_checkable
class WebhookHandler(Protocol):
    """Receives every published event plus payment-intent specific hooks.

    ``handle_event`` is always awaited before the type-specific method for
    the same event.
    """

    async def handle_event(self, event: VerifiedEvent) -> None: ...

    async def handle_payment_intent_created(
        self, payment_intent: Mapping[str, Any], event: VerifiedEvent
    ) -> None: ...

    async def handle_payment_intent_succeeded(
        self, payment_intent: Mapping[str, Any], event: VerifiedEvent
    ) -> None: ...

    async def handle_payment_intent_failed(
        self, payment_intent: Mapping[str, Any], event: VerifiedEvent
    ) -> None: ...

    async def handle_payment_intent_canceled(
        self, payment_intent: Mapping[str, Any], event: VerifiedEvent
    ) -> None: ...

    async def handle_payment_intent_processing(
        self, payment_intent: Mapping[str, Any], event: VerifiedEvent
    ) -> None: ...


class BaseWebhookHandler:
    """No-op ``WebhookHandler``; subclass and override what you need."""

    async def handle_event(self, event: VerifiedEvent) -> None:
        return None

    async def handle_payment_intent_created(
        self, payment_intent: Mapping[str, Any], event: VerifiedEvent
    ) -> None:
        return None

    async def handle_payment_intent_succeeded(
        self, payment_intent: Mapping[str, Any], event: VerifiedEvent
    ) -> None:
        return None

    async def handle_payment_intent_failed(
        self, payment_intent: Mapping[str, Any], event: VerifiedEvent
    ) -> None:
        return None

    async def handle_payment_intent_canceled(
        self, payment_intent: Mapping[str, Any], event: VerifiedEvent
    ) -> None:
        return None

    async def handle_payment_intent_processing(
        self, payment_intent: Mapping[str, Any], event: VerifiedEvent
    ) -> None:
        return None
