"""Turn payment lifecycle events into payment metrics."""

from __future__ import annotations

from typing import TYPE_CHECKING

from payment_relay.notifications.listeners import BasePaymentEventListener

if TYPE_CHECKING:
    from payment_relay.metrics.fanout import MetricsFanout
    from payment_relay.notifications.listeners import (
        DatabaseEventData,
        PaymentEventData,
        RefundEventData,
    )


class MetricsEventListener(BasePaymentEventListener):
    """Count and size every payment, refund and persistence event.

    Args:
        metrics: Fan-out the metrics are emitted through.
        include_detailed_tags: Add ``payment_intent_id`` to count tags.
    """

    def __init__(self, metrics: MetricsFanout, *, include_detailed_tags: bool = False) -> None:
        self._metrics = metrics
        self._detailed = include_detailed_tags

    def _tags(self, payment_intent_id: str, **tags: str) -> dict[str, str]:
        if self._detailed:
            tags["payment_intent_id"] = payment_intent_id
        return tags

    async def on_payment_created(self, data: PaymentEventData) -> None:
        self._metrics.increment_counter("created.count")
        self._metrics.record_amount("created.amount", data.amount, data.currency)
        self._metrics.increment_counter(
            "created.by_currency",
            1,
            self._tags(data.payment_intent_id, status=data.status, currency=data.currency),
        )

    async def on_payment_confirmed(self, data: PaymentEventData) -> None:
        self._metrics.increment_counter("confirmed.count")
        self._metrics.record_amount("confirmed.amount", data.amount, data.currency)
        self._metrics.increment_counter(
            "confirmed.by_currency", 1, self._tags(data.payment_intent_id, currency=data.currency)
        )

    async def on_payment_failed(self, data: PaymentEventData) -> None:
        self._metrics.increment_counter("failed.count")
        self._metrics.record_amount("failed.amount", data.amount, data.currency)
        self._metrics.increment_counter(
            "failed.by_status",
            1,
            self._tags(data.payment_intent_id, status=data.status, currency=data.currency),
        )

    async def on_payment_canceled(self, data: PaymentEventData) -> None:
        self._metrics.increment_counter("canceled.count")
        self._metrics.record_amount("canceled.amount", data.amount, data.currency)

    async def on_refund_initiated(self, data: RefundEventData) -> None:
        self._metrics.increment_counter("refund.initiated.count")
        self._metrics.record_amount("refund.initiated.amount", data.amount, data.currency)
        if data.reason:
            self._metrics.increment_counter(
                "refund.initiated.by_reason",
                1,
                self._tags(data.payment_intent_id, reason=data.reason, currency=data.currency),
            )

    async def on_refund_succeeded(self, data: RefundEventData) -> None:
        self._metrics.increment_counter("refund.succeeded.count")
        self._metrics.record_amount("refund.succeeded.amount", data.amount, data.currency)

    async def on_refund_failed(self, data: RefundEventData) -> None:
        self._metrics.increment_counter("refund.failed.count")
        self._metrics.record_amount("refund.failed.amount", data.amount, data.currency)

    async def on_record_created(self, data: DatabaseEventData) -> None:
        self._metrics.increment_counter("database.record_created.count")
        self._metrics.increment_counter(
            "database.operations", 1, {"operation": data.operation, "status": ""}
        )

    async def on_record_updated(self, data: DatabaseEventData) -> None:
        self._metrics.increment_counter("database.record_updated.count")
        self._metrics.increment_counter(
            "database.operations",
            1,
            {"operation": data.operation, "status": data.record.status},
        )
