"""Tests for the multi-pattern webhook publisher."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import pytest

from payment_relay.errors import ConsumerError
from payment_relay.notifications.handlers import BaseWebhookHandler, WebhookHandler
from payment_relay.notifications.publisher import (
    Hook,
    WebhookNotification,
    WebhookPublisher,
    resolve_hook,
)
from payment_relay.webhooks.events import VerifiedEvent

if TYPE_CHECKING:
    from collections.abc import Mapping


def _pi_event(event_type: str = "payment_intent.succeeded") -> VerifiedEvent:
    return VerifiedEvent.synthesize(
        event_type,
        {"id": "pi_1", "object": "payment_intent", "status": "succeeded", "amount": 100},
    )


class OrderHandler(BaseWebhookHandler):
    def __init__(self, log: list[str]) -> None:
        self.log = log

    async def handle_event(self, event: VerifiedEvent) -> None:
        self.log.append("generic")

    async def handle_payment_intent_created(
        self, payment_intent: Mapping[str, Any], event: VerifiedEvent
    ) -> None:
        self.log.append("created")

    async def handle_payment_intent_succeeded(
        self, payment_intent: Mapping[str, Any], event: VerifiedEvent
    ) -> None:
        self.log.append("succeeded")

    async def handle_payment_intent_failed(
        self, payment_intent: Mapping[str, Any], event: VerifiedEvent
    ) -> None:
        self.log.append("failed")

    async def handle_payment_intent_canceled(
        self, payment_intent: Mapping[str, Any], event: VerifiedEvent
    ) -> None:
        self.log.append("canceled")

    async def handle_payment_intent_processing(
        self, payment_intent: Mapping[str, Any], event: VerifiedEvent
    ) -> None:
        self.log.append("processing")


class TestResolveHook:
    @pytest.mark.parametrize(
        ("event_type", "hook"),
        [
            ("payment_intent.created", Hook.CREATED),
            ("payment_intent.succeeded", Hook.SUCCEEDED),
            ("payment_intent.payment_failed", Hook.FAILED),
            ("payment_intent.canceled", Hook.CANCELED),
            ("payment_intent.processing", Hook.PROCESSING),
        ],
    )
    def test_lifecycle_events(self, event_type: str, hook: Hook) -> None:
        assert resolve_hook(event_type) is hook

    def test_unknown_event(self) -> None:
        assert resolve_hook("charge.refund.updated") is None


class TestHandlerContract:
    def test_base_handler_satisfies_protocol(self) -> None:
        assert isinstance(BaseWebhookHandler(), WebhookHandler)

    async def test_base_handler_methods_are_noops(self) -> None:
        handler = BaseWebhookHandler()
        event = _pi_event()
        assert await handler.handle_event(event) is None
        assert await handler.handle_payment_intent_succeeded(event.payload, event) is None


class TestRouting:
    @pytest.mark.parametrize(
        ("event_type", "specific"),
        [
            ("payment_intent.created", "created"),
            ("payment_intent.succeeded", "succeeded"),
            ("payment_intent.payment_failed", "failed"),
            ("payment_intent.canceled", "canceled"),
            ("payment_intent.processing", "processing"),
        ],
    )
    async def test_generic_before_specific(self, event_type: str, specific: str) -> None:
        log: list[str] = []
        publisher = WebhookPublisher(handlers=[OrderHandler(log)])
        await publisher.publish(_pi_event(event_type))
        assert log == ["generic", specific]

    async def test_unmapped_event_gets_generic_only(self) -> None:
        log: list[str] = []
        publisher = WebhookPublisher(handlers=[OrderHandler(log)])
        await publisher.publish(VerifiedEvent.synthesize("charge.refund.updated", {"id": "re_1"}))
        assert log == ["generic"]

    async def test_callback_only_for_payment_intents(self) -> None:
        calls: list[str] = []

        def callback(payment_intent: Mapping[str, Any], event: VerifiedEvent) -> None:
            calls.append(event.type)

        publisher = WebhookPublisher(callback)
        await publisher.publish(_pi_event())
        await publisher.publish(VerifiedEvent.synthesize("customer.created", {"id": "cus_1"}))
        assert calls == ["payment_intent.succeeded"]

    async def test_set_callback_replaces_slot(self) -> None:
        first: list[str] = []
        second: list[str] = []
        publisher = WebhookPublisher(lambda pi, ev: first.append(ev.id))
        publisher.set_callback(lambda pi, ev: second.append(ev.id))
        await publisher.publish(_pi_event())
        assert first == []
        assert len(second) == 1

    async def test_hook_subscribers(self) -> None:
        succeeded: list[WebhookNotification] = []
        any_hook: list[WebhookNotification] = []
        failed: list[WebhookNotification] = []
        publisher = WebhookPublisher()
        publisher.subscribe(Hook.SUCCEEDED, succeeded.append)
        publisher.subscribe("any", any_hook.append)
        publisher.subscribe(Hook.FAILED, failed.append)

        event = _pi_event()
        await publisher.publish(event)

        assert [n.event for n in succeeded] == [event]
        assert [n.event for n in any_hook] == [event]
        assert failed == []
        assert succeeded[0].payment_intent == event.payload

    async def test_unsubscribe(self) -> None:
        calls: list[WebhookNotification] = []
        publisher = WebhookPublisher()
        publisher.subscribe(Hook.SUCCEEDED, calls.append)
        publisher.unsubscribe(Hook.SUCCEEDED, calls.append)
        publisher.unsubscribe(Hook.SUCCEEDED, calls.append)
        assert publisher.subscriber_count(Hook.SUCCEEDED) == 0
        await publisher.publish(_pi_event())
        assert calls == []

    async def test_no_consumers_is_noop(self) -> None:
        await WebhookPublisher().publish(_pi_event())

    def test_add_handler(self) -> None:
        publisher = WebhookPublisher()
        handler = BaseWebhookHandler()
        publisher.add_handler(handler)
        assert publisher.handlers == [handler]


class TestIsolation:
    async def test_failure_does_not_stop_others(self) -> None:
        calls: list[str] = []

        async def boom(notification: WebhookNotification) -> None:
            msg = "subscriber failed"
            raise ValueError(msg)

        publisher = WebhookPublisher(lambda pi, ev: calls.append("callback"))
        publisher.subscribe(Hook.SUCCEEDED, boom)
        publisher.subscribe(Hook.SUCCEEDED, lambda n: calls.append("subscriber"))
        publisher.add_handler(OrderHandler(calls))

        await publisher.publish(_pi_event())
        assert sorted(calls) == ["callback", "generic", "subscriber", "succeeded"]

    async def test_continue_on_error_false_raises_with_all_errors(self) -> None:
        calls: list[str] = []

        def bad_callback(pi: Mapping[str, Any], ev: VerifiedEvent) -> None:
            msg = "callback failed"
            raise RuntimeError(msg)

        def bad_subscriber(notification: WebhookNotification) -> None:
            msg = "subscriber failed"
            raise KeyError(msg)

        publisher = WebhookPublisher(bad_callback, continue_on_error=False)
        publisher.subscribe(Hook.SUCCEEDED, bad_subscriber)
        publisher.subscribe(Hook.ANY, lambda n: calls.append("any"))

        with pytest.raises(ConsumerError) as exc_info:
            await publisher.publish(_pi_event())

        assert len(exc_info.value.errors) == 2
        assert calls == ["any"]

    async def test_slow_consumer_times_out(self) -> None:
        calls: list[str] = []

        async def slow(notification: WebhookNotification) -> None:
            await asyncio.sleep(5)

        publisher = WebhookPublisher(timeout=0.05, continue_on_error=False)
        publisher.subscribe(Hook.SUCCEEDED, slow)
        publisher.subscribe(Hook.SUCCEEDED, lambda n: calls.append("fast"))

        with pytest.raises(ConsumerError) as exc_info:
            await publisher.publish(_pi_event())

        assert isinstance(exc_info.value.errors[0], TimeoutError)
        assert calls == ["fast"]

    async def test_consumers_run_concurrently(self) -> None:
        started = asyncio.Event()
        order: list[str] = []

        async def waiter(notification: WebhookNotification) -> None:
            await asyncio.wait_for(started.wait(), timeout=1)
            order.append("waiter")

        async def releaser(notification: WebhookNotification) -> None:
            order.append("releaser")
            started.set()

        publisher = WebhookPublisher()
        publisher.subscribe(Hook.SUCCEEDED, waiter)
        publisher.subscribe(Hook.SUCCEEDED, releaser)
        await publisher.publish(_pi_event())
        assert order == ["releaser", "waiter"]

    async def test_throwing_callback_does_not_block_handler(self) -> None:
        log: list[str] = []

        def bad_callback(pi: Mapping[str, Any], ev: VerifiedEvent) -> None:
            log.append("callback")
            msg = "callback failed"
            raise RuntimeError(msg)

        publisher = WebhookPublisher(bad_callback, [OrderHandler(log)], continue_on_error=True)
        await publisher.publish(_pi_event())
        assert sorted(log) == ["callback", "generic", "succeeded"]
