"""Tests for payment lifecycle listeners."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from payment_relay.datastore.models import TransactionRecord
from payment_relay.notifications.listeners import (
    BasePaymentEventListener,
    DatabaseEventData,
    PaymentEventData,
    PaymentEventListener,
    PaymentEventPublisher,
    RefundEventData,
    event_to_dict,
)


class Recorder(BasePaymentEventListener):
    def __init__(self) -> None:
        self.seen: list[str] = []

    async def on_payment_created(self, data: PaymentEventData) -> None:
        self.seen.append("created")

    async def on_payment_confirmed(self, data: PaymentEventData) -> None:
        self.seen.append("confirmed")

    async def on_payment_failed(self, data: PaymentEventData) -> None:
        self.seen.append("failed")

    async def on_payment_canceled(self, data: PaymentEventData) -> None:
        self.seen.append("canceled")

    async def on_refund_initiated(self, data: RefundEventData) -> None:
        self.seen.append("refund_initiated")

    async def on_refund_succeeded(self, data: RefundEventData) -> None:
        self.seen.append("refund_succeeded")

    async def on_refund_failed(self, data: RefundEventData) -> None:
        self.seen.append("refund_failed")

    async def on_record_created(self, data: DatabaseEventData) -> None:
        self.seen.append(f"record_created:{data.operation}")

    async def on_record_updated(self, data: DatabaseEventData) -> None:
        self.seen.append(f"record_updated:{data.operation}")


class Exploding(BasePaymentEventListener):
    async def on_payment_created(self, data: PaymentEventData) -> None:
        msg = "listener failed"
        raise RuntimeError(msg)


def _payment(status: str = "succeeded") -> PaymentEventData:
    return PaymentEventData(payment_intent_id="pi_1", amount=1000, currency="usd", status=status)


def _refund(status: str = "pending") -> RefundEventData:
    return RefundEventData(
        payment_intent_id="pi_1",
        refund_id="re_1",
        amount=500,
        currency="usd",
        status=status,
        reason="requested_by_customer",
    )


class TestEventData:
    def test_payment_event_serializes_without_record(self) -> None:
        ts = datetime(2024, 5, 1, tzinfo=UTC)
        data = PaymentEventData(
            payment_intent_id="pi_1",
            amount=1000,
            currency="usd",
            status="succeeded",
            timestamp=ts,
            metadata={"order": "42"},
        )
        out = event_to_dict(data)
        assert out["payment_intent_id"] == "pi_1"
        assert out["timestamp"] == ts.isoformat()
        assert out["metadata"] == {"order": "42"}
        assert "record" not in out

    def test_database_event_to_dict(self) -> None:
        record = TransactionRecord.new("pi_1", status="succeeded", amount=1, currency="usd")
        data = DatabaseEventData(payment_intent_id="pi_1", operation="update", record=record)
        out = data.to_dict()
        assert out["record_id"] == record.id
        assert out["status"] == "succeeded"
        assert out["operation"] == "update"

    def test_base_listener_satisfies_protocol(self) -> None:
        assert isinstance(BasePaymentEventListener(), PaymentEventListener)


class TestPublisher:
    async def test_every_event_reaches_listener(self) -> None:
        recorder = Recorder()
        events = PaymentEventPublisher([recorder])
        record = TransactionRecord.new("pi_1", status="created", amount=1, currency="usd")

        await events.publish_payment_created(_payment("requires_payment_method"))
        await events.publish_payment_confirmed(_payment())
        await events.publish_payment_failed(_payment("requires_payment_method"))
        await events.publish_payment_canceled(_payment("canceled"))
        await events.publish_refund_initiated(_refund())
        await events.publish_refund_succeeded(_refund("succeeded"))
        await events.publish_refund_failed(_refund("failed"))
        await events.publish_record_created(
            DatabaseEventData(payment_intent_id="pi_1", operation="create", record=record)
        )
        await events.publish_record_updated(
            DatabaseEventData(payment_intent_id="pi_1", operation="update", record=record)
        )

        assert recorder.seen == [
            "created",
            "confirmed",
            "failed",
            "canceled",
            "refund_initiated",
            "refund_succeeded",
            "refund_failed",
            "record_created:create",
            "record_updated:update",
        ]

    async def test_failing_listener_is_isolated(self) -> None:
        recorder = Recorder()
        events = PaymentEventPublisher([Exploding(), recorder])
        await events.publish_payment_created(_payment())
        assert recorder.seen == ["created"]

    async def test_no_listeners(self) -> None:
        await PaymentEventPublisher().publish_payment_created(_payment())

    def test_add_listener(self) -> None:
        events = PaymentEventPublisher()
        recorder = Recorder()
        events.add_listener(recorder)
        assert events.listeners == [recorder]


class TestStatusRouting:
    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            ("succeeded", ["confirmed"]),
            ("canceled", ["canceled"]),
            ("requires_payment_method", ["failed"]),
            ("payment_failed", ["failed"]),
            ("processing", []),
            ("requires_action", []),
        ],
    )
    async def test_publish_payment_status(self, status: str, expected: list[str]) -> None:
        recorder = Recorder()
        await PaymentEventPublisher([recorder]).publish_payment_status(_payment(status))
        assert recorder.seen == expected

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            ("succeeded", "refund_succeeded"),
            ("failed", "refund_failed"),
            ("pending", "refund_initiated"),
            ("requires_action", "refund_initiated"),
        ],
    )
    async def test_publish_refund_status(self, status: str, expected: str) -> None:
        recorder = Recorder()
        await PaymentEventPublisher([recorder]).publish_refund_status(_refund(status))
        assert recorder.seen == [expected]
