"""Tests for the metrics lifecycle listener."""

from __future__ import annotations

from typing import Any

from payment_relay.datastore.models import TransactionRecord
from payment_relay.metrics.fanout import MetricsFanout
from payment_relay.metrics.listener import MetricsEventListener
from payment_relay.metrics.sinks import PrometheusMetricsSink
from payment_relay.notifications.listeners import (
    DatabaseEventData,
    PaymentEventData,
    PaymentEventPublisher,
    RefundEventData,
)


def _setup(*, detailed: bool = False) -> tuple[MetricsEventListener, MetricsFanout, Any]:
    sink = PrometheusMetricsSink()
    metrics = MetricsFanout([sink], prefix="stripe.payment")
    return MetricsEventListener(metrics, include_detailed_tags=detailed), metrics, sink


def _payment(status: str = "succeeded", currency: str = "USD") -> PaymentEventData:
    return PaymentEventData(
        payment_intent_id="pi_1", amount=2000, currency=currency, status=status
    )


class TestPaymentMetrics:
    async def test_created(self) -> None:
        listener, metrics, sink = _setup()
        await listener.on_payment_created(_payment("requires_payment_method"))
        await metrics.drain()

        registry = sink.collector.registry
        assert registry.get_sample_value("stripe_payment_created_count_total") == 1.0
        assert (
            registry.get_sample_value("stripe_payment_created_amount_sum", {"currency": "usd"})
            == 2000.0
        )
        assert (
            registry.get_sample_value(
                "stripe_payment_created_by_currency_total",
                {"currency": "USD", "status": "requires_payment_method"},
            )
            == 1.0
        )

    async def test_confirmed_via_status_routing(self) -> None:
        listener, metrics, sink = _setup()
        await PaymentEventPublisher([listener]).publish_payment_status(_payment("succeeded"))
        await metrics.drain()
        assert (
            sink.collector.registry.get_sample_value("stripe_payment_confirmed_count_total")
            == 1.0
        )

    async def test_failed_and_canceled(self) -> None:
        listener, metrics, sink = _setup()
        await listener.on_payment_failed(_payment("requires_payment_method"))
        await listener.on_payment_canceled(_payment("canceled"))
        await metrics.drain()
        registry = sink.collector.registry
        assert registry.get_sample_value("stripe_payment_failed_count_total") == 1.0
        assert registry.get_sample_value("stripe_payment_canceled_count_total") == 1.0

    async def test_detailed_tags_add_payment_intent_id(self) -> None:
        listener, metrics, sink = _setup(detailed=True)
        await listener.on_payment_confirmed(_payment(currency="usd"))
        await metrics.drain()
        assert (
            sink.collector.registry.get_sample_value(
                "stripe_payment_confirmed_by_currency_total",
                {"currency": "usd", "payment_intent_id": "pi_1"},
            )
            == 1.0
        )


class TestRefundMetrics:
    async def test_initiated_with_reason(self) -> None:
        listener, metrics, sink = _setup()
        await listener.on_refund_initiated(
            RefundEventData(
                payment_intent_id="pi_1",
                refund_id="re_1",
                amount=500,
                currency="usd",
                status="pending",
                reason="duplicate",
            )
        )
        await metrics.drain()
        registry = sink.collector.registry
        assert registry.get_sample_value("stripe_payment_refund_initiated_count_total") == 1.0
        assert (
            registry.get_sample_value(
                "stripe_payment_refund_initiated_by_reason_total",
                {"currency": "usd", "reason": "duplicate"},
            )
            == 1.0
        )

    async def test_succeeded_and_failed(self) -> None:
        listener, metrics, sink = _setup()
        refund = RefundEventData(
            payment_intent_id="pi_1",
            refund_id="re_1",
            amount=500,
            currency="usd",
            status="pending",
        )
        await listener.on_refund_succeeded(refund)
        await listener.on_refund_failed(refund)
        await metrics.drain()
        registry = sink.collector.registry
        assert registry.get_sample_value("stripe_payment_refund_succeeded_count_total") == 1.0
        assert registry.get_sample_value("stripe_payment_refund_failed_count_total") == 1.0


class TestDatabaseMetrics:
    async def test_record_operations(self) -> None:
        listener, metrics, sink = _setup()
        record = TransactionRecord.new("pi_1", status="succeeded", amount=1, currency="usd")
        await listener.on_record_created(
            DatabaseEventData(payment_intent_id="pi_1", operation="create", record=record)
        )
        await listener.on_record_updated(
            DatabaseEventData(payment_intent_id="pi_1", operation="update", record=record)
        )
        await metrics.drain()
        registry = sink.collector.registry
        assert (
            registry.get_sample_value("stripe_payment_database_record_created_count_total")
            == 1.0
        )
        assert (
            registry.get_sample_value(
                "stripe_payment_database_operations_total",
                {"operation": "update", "status": "succeeded"},
            )
            == 1.0
        )
