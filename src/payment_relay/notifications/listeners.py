"""Payment lifecycle events raised by local payment operations.

``PaymentEventPublisher`` delivers each lifecycle event to every registered
``PaymentEventListener`` concurrently; a failing listener is logged and does
not affect the others or the caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, fields
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from payment_relay.datastore.models import TransactionRecord

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class PaymentEventData:
    """Payment intent lifecycle event."""

    payment_intent_id: str
    amount: int
    currency: str
    status: str
    timestamp: datetime = field(default_factory=_now)
    metadata: dict[str, str] | None = None
    record: TransactionRecord | None = None


@dataclass(frozen=True)
class RefundEventData:
    """Refund lifecycle event."""

    payment_intent_id: str
    refund_id: str
    amount: int
    currency: str
    status: str
    reason: str | None = None
    timestamp: datetime = field(default_factory=_now)
    metadata: dict[str, str] | None = None
    record: TransactionRecord | None = None


@dataclass(frozen=True)
class DatabaseEventData:
    """Transaction record persistence event."""

    payment_intent_id: str
    operation: str
    record: TransactionRecord
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict (record summarised by id and status)."""
        return {
            "payment_intent_id": self.payment_intent_id,
            "operation": self.operation,
            "record_id": self.record.id,
            "status": self.record.status,
            "timestamp": self.timestamp.isoformat(),
        }


def event_to_dict(data: PaymentEventData | RefundEventData) -> dict[str, Any]:
    """Serialize payment or refund event data, omitting the stored record."""
    out = {f.name: getattr(data, f.name) for f in fields(data) if f.name != "record"}
    out["timestamp"] = data.timestamp.isoformat()
    return out


@runtime_checkable
class PaymentEventListener(Protocol):
    """Receives payment, refund and persistence lifecycle events."""

    async def on_payment_created(self, data: PaymentEventData) -> None: ...
    async def on_payment_confirmed(self, data: PaymentEventData) -> None: ...
    async def on_payment_failed(self, data: PaymentEventData) -> None: ...
    async def on_payment_canceled(self, data: PaymentEventData) -> None: ...
    async def on_refund_initiated(self, data: RefundEventData) -> None: ...
    async def on_refund_succeeded(self, data: RefundEventData) -> None: ...
    async def on_refund_failed(self, data: RefundEventData) -> None: ...
    async def on_record_created(self, data: DatabaseEventData) -> None: ...
    async def on_record_updated(self, data: DatabaseEventData) -> None: ...


class BasePaymentEventListener:
    """No-op ``PaymentEventListener``; override the events you care about."""

    async def on_payment_created(self, data: PaymentEventData) -> None:
        return None

    async def on_payment_confirmed(self, data: PaymentEventData) -> None:
        return None

    async def on_payment_failed(self, data: PaymentEventData) -> None:
        return None

    async def on_payment_canceled(self, data: PaymentEventData) -> None:
        return None

    async def on_refund_initiated(self, data: RefundEventData) -> None:
        return None

    async def on_refund_succeeded(self, data: RefundEventData) -> None:
        return None

    async def on_refund_failed(self, data: RefundEventData) -> None:
        return None

    async def on_record_created(self, data: DatabaseEventData) -> None:
        return None

    async def on_record_updated(self, data: DatabaseEventData) -> None:
        return None


class PaymentEventPublisher:
    """Raise lifecycle events to registered listeners."""

    def __init__(self, listeners: Iterable[PaymentEventListener] = ()) -> None:
        self._listeners: list[PaymentEventListener] = list(listeners)

    @property
    def listeners(self) -> list[PaymentEventListener]:
        """Registered listeners."""
        return list(self._listeners)

    def add_listener(self, listener: PaymentEventListener) -> None:
        """Register a listener."""
        self._listeners.append(listener)

    async def publish_payment_created(self, data: PaymentEventData) -> None:
        logger.debug("Publishing PaymentCreated for %s", data.payment_intent_id)
        await self._publish(
            "PaymentCreated", data.payment_intent_id, lambda lsn: lsn.on_payment_created(data)
        )

    async def publish_payment_confirmed(self, data: PaymentEventData) -> None:
        logger.info("Publishing PaymentConfirmed for %s", data.payment_intent_id)
        await self._publish(
            "PaymentConfirmed", data.payment_intent_id, lambda lsn: lsn.on_payment_confirmed(data)
        )

    async def publish_payment_failed(self, data: PaymentEventData) -> None:
        logger.warning("Publishing PaymentFailed for %s", data.payment_intent_id)
        await self._publish(
            "PaymentFailed", data.payment_intent_id, lambda lsn: lsn.on_payment_failed(data)
        )

    async def publish_payment_canceled(self, data: PaymentEventData) -> None:
        logger.info("Publishing PaymentCanceled for %s", data.payment_intent_id)
        await self._publish(
            "PaymentCanceled", data.payment_intent_id, lambda lsn: lsn.on_payment_canceled(data)
        )

    async def publish_refund_initiated(self, data: RefundEventData) -> None:
        logger.info("Publishing RefundInitiated for %s", data.payment_intent_id)
        await self._publish(
            "RefundInitiated", data.payment_intent_id, lambda lsn: lsn.on_refund_initiated(data)
        )

    async def publish_refund_succeeded(self, data: RefundEventData) -> None:
        logger.info("Publishing RefundSucceeded for %s", data.payment_intent_id)
        await self._publish(
            "RefundSucceeded", data.payment_intent_id, lambda lsn: lsn.on_refund_succeeded(data)
        )

    async def publish_refund_failed(self, data: RefundEventData) -> None:
        logger.warning("Publishing RefundFailed for %s", data.payment_intent_id)
        await self._publish(
            "RefundFailed", data.payment_intent_id, lambda lsn: lsn.on_refund_failed(data)
        )

    async def publish_record_created(self, data: DatabaseEventData) -> None:
        logger.debug("Publishing RecordCreated for %s", data.payment_intent_id)
        await self._publish(
            "RecordCreated", data.payment_intent_id, lambda lsn: lsn.on_record_created(data)
        )

    async def publish_record_updated(self, data: DatabaseEventData) -> None:
        logger.debug("Publishing RecordUpdated for %s", data.payment_intent_id)
        await self._publish(
            "RecordUpdated", data.payment_intent_id, lambda lsn: lsn.on_record_updated(data)
        )

    async def publish_payment_status(self, data: PaymentEventData) -> None:
        """Raise the lifecycle event matching ``data.status``, if any."""
        if data.status == "succeeded":
            await self.publish_payment_confirmed(data)
        elif data.status == "canceled":
            await self.publish_payment_canceled(data)
        elif data.status in ("payment_failed", "requires_payment_method"):
            await self.publish_payment_failed(data)

    async def publish_refund_status(self, data: RefundEventData) -> None:
        """Raise the refund event matching ``data.status``."""
        if data.status == "succeeded":
            await self.publish_refund_succeeded(data)
        elif data.status == "failed":
            await self.publish_refund_failed(data)
        else:
            await self.publish_refund_initiated(data)

    async def _publish(
        self,
        name: str,
        payment_intent_id: str,
        action: Callable[[PaymentEventListener], Awaitable[None]],
    ) -> None:
        listeners = list(self._listeners)
        if not listeners:
            return

        async def _run(listener: PaymentEventListener) -> None:
            try:
                await action(listener)
            except Exception:
                logger.exception(
                    "Listener %s failed handling %s for %s",
                    type(listener).__name__,
                    name,
                    payment_intent_id,
                )

        await asyncio.gather(*(_run(listener) for listener in listeners))
