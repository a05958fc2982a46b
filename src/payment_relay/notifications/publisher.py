"""Multi-pattern webhook publisher.

One published event reaches three kinds of consumers:

1. a single registered callback (payment intent events only),
2. subscribers registered against a named hook (``Hook``),
3. handler implementations (``WebhookHandler``).

Every consumer invocation runs as its own task and is wrapped individually:
a failing or hanging consumer is logged and never stops the others.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from payment_relay.errors import ConsumerError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from payment_relay.notifications.handlers import WebhookHandler
    from payment_relay.webhooks.events import VerifiedEvent

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class Hook(enum.StrEnum):
    """Named hooks subscribers can attach to."""

    ANY = "any"
    CREATED = "created"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"
    PROCESSING = "processing"


_EVENT_HOOKS: dict[str, Hook] = {
    "payment_intent.created": Hook.CREATED,
    "payment_intent.succeeded": Hook.SUCCEEDED,
    "payment_intent.payment_failed": Hook.FAILED,
    "payment_intent.canceled": Hook.CANCELED,
    "payment_intent.processing": Hook.PROCESSING,
}

_HANDLER_METHODS: dict[Hook, str] = {
    Hook.CREATED: "handle_payment_intent_created",
    Hook.SUCCEEDED: "handle_payment_intent_succeeded",
    Hook.FAILED: "handle_payment_intent_failed",
    Hook.CANCELED: "handle_payment_intent_canceled",
    Hook.PROCESSING: "handle_payment_intent_processing",
}


def resolve_hook(event_type: str) -> Hook | None:
    """Return the lifecycle hook for *event_type*, or ``None`` for other events."""
    return _EVENT_HOOKS.get(event_type)


@dataclass(frozen=True)
class WebhookNotification:
    """Argument passed to hook subscribers."""

    event: VerifiedEvent
    received_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    payment_intent: Mapping[str, Any] | None = None


WebhookCallback = Callable[["Mapping[str, Any]", "VerifiedEvent"], "Awaitable[None] | None"]
HookSubscriber = Callable[[WebhookNotification], "Awaitable[None] | None"]


class WebhookPublisher:
    """Fan a verified event out to callback, hook subscribers and handlers.

    Usage::

        publisher = WebhookPublisher(callback=on_payment, handlers=[AuditHandler()])
        publisher.subscribe(Hook.SUCCEEDED, send_receipt)
        await publisher.publish(event)

    Args:
        callback: Optional single callback invoked with
            ``(payment_intent, event)`` for payment intent events.
        handlers: Handler implementations.
        continue_on_error: When ``False``, ``publish`` raises
            ``ConsumerError`` after every consumer has been attempted.
        timeout: Per-consumer time limit in seconds.
    """

    def __init__(
        self,
        callback: WebhookCallback | None = None,
        handlers: Iterable[WebhookHandler] = (),
        *,
        continue_on_error: bool = True,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._callback = callback
        self._handlers: list[WebhookHandler] = list(handlers)
        self._subscribers: dict[Hook, list[HookSubscriber]] = {hook: [] for hook in Hook}
        self._continue_on_error = continue_on_error
        self._timeout = timeout

    @property
    def continue_on_error(self) -> bool:
        """Whether consumer failures are only logged."""
        return self._continue_on_error

    @property
    def handlers(self) -> list[WebhookHandler]:
        """Registered handler implementations."""
        return list(self._handlers)

    def set_callback(self, callback: WebhookCallback | None) -> None:
        """Replace the single callback slot."""
        self._callback = callback

    def add_handler(self, handler: WebhookHandler) -> None:
        """Register a handler implementation."""
        self._handlers.append(handler)

    def subscribe(self, hook: Hook | str, subscriber: HookSubscriber) -> None:
        """Attach *subscriber* to *hook*."""
        self._subscribers[Hook(hook)].append(subscriber)

    def unsubscribe(self, hook: Hook | str, subscriber: HookSubscriber) -> None:
        """Detach *subscriber* from *hook*; no-op if not attached."""
        subs = self._subscribers[Hook(hook)]
        if subscriber in subs:
            subs.remove(subscriber)

    def subscriber_count(self, hook: Hook | str) -> int:
        """Number of subscribers attached to *hook*."""
        return len(self._subscribers[Hook(hook)])

    async def publish(self, event: VerifiedEvent) -> None:
        """Invoke every consumer for *event* concurrently.

        Raises:
            ConsumerError: Only when ``continue_on_error`` is ``False`` and at
                least one consumer failed.
        """
        hook = resolve_hook(event.type)
        payment_intent = event.payload if event.is_payment_intent else None
        notification = WebhookNotification(event=event, payment_intent=payment_intent)

        calls: list[Awaitable[BaseException | None]] = []
        if self._callback is not None and payment_intent is not None:
            calls.append(self._guard("callback", event, self._callback, payment_intent, event))
        if hook is not None:
            for sub in list(self._subscribers[hook]):
                calls.append(self._guard(f"subscriber[{hook}]", event, sub, notification))
        for sub in list(self._subscribers[Hook.ANY]):
            calls.append(self._guard("subscriber[any]", event, sub, notification))
        for handler in list(self._handlers):
            calls.append(
                self._guard(
                    type(handler).__name__,
                    event,
                    self._run_handler,
                    handler,
                    hook,
                    payment_intent,
                    event,
                )
            )

        if not calls:
            logger.debug("No consumers registered for event %s (%s)", event.id, event.type)
            return

        logger.debug("Publishing event %s (%s) to %d consumer(s)", event.id, event.type, len(calls))
        results = await asyncio.gather(*calls)
        errors = [r for r in results if r is not None]

        if errors and not self._continue_on_error:
            msg = f"{len(errors)} consumer(s) failed for event {event.id}"
            raise ConsumerError(msg, errors)

    @staticmethod
    async def _run_handler(
        handler: WebhookHandler,
        hook: Hook | None,
        payment_intent: Mapping[str, Any] | None,
        event: VerifiedEvent,
    ) -> None:
        await handler.handle_event(event)
        if hook is not None and payment_intent is not None:
            await getattr(handler, _HANDLER_METHODS[hook])(payment_intent, event)

    async def _guard(
        self,
        label: str,
        event: VerifiedEvent,
        fn: Callable[..., Any],
        *args: Any,
    ) -> BaseException | None:
        try:
            async with asyncio.timeout(self._timeout):
                result = fn(*args)
                if inspect.isawaitable(result):
                    await result
        except TimeoutError as exc:
            logger.error(
                "Consumer %s timed out after %.1fs handling event %s (%s)",
                label,
                self._timeout,
                event.id,
                event.type,
            )
            return exc
        except Exception as exc:
            logger.exception(
                "Consumer %s failed handling event %s (%s)", label, event.id, event.type
            )
            return exc
        return None
