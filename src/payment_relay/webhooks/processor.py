"""Inbound webhook pipeline.

``verify -> cache -> record update -> publish -> realtime fan-out``, run
sequentially for each accepted event. A rejected webhook raises a
``VerificationError`` before any side effect happens. A failed record update
is logged and the event is still published.
"""

from __future__ import annotations

import logging
from contextlib import nullcontext
from typing import TYPE_CHECKING, Any

from payment_relay.errors import VerificationError
from payment_relay.notifications.listeners import DatabaseEventData, PaymentEventData
from payment_relay.utils import sanitize_for_log
from payment_relay.webhooks import verifier

if TYPE_CHECKING:
    from payment_relay.datastore.repository import TransactionRepository
    from payment_relay.metrics.collector import RelayMetrics
    from payment_relay.notifications.listeners import PaymentEventPublisher
    from payment_relay.notifications.publisher import WebhookPublisher
    from payment_relay.realtime.fanout import RealtimeNotifier
    from payment_relay.webhooks.cache import EventCache
    from payment_relay.webhooks.events import VerifiedEvent

logger = logging.getLogger(__name__)


def realtime_payload(event: VerifiedEvent) -> dict[str, Any] | None:
    """Summary pushed to WebSocket subscribers for *event*, if it has one."""
    payload = event.payload
    if event.is_payment_intent:
        return {
            "id": payload.get("id"),
            "status": payload.get("status"),
            "amount": payload.get("amount"),
            "currency": payload.get("currency"),
        }
    if event.is_refund:
        return {
            "type": "refund_update",
            "refundId": payload.get("id"),
            "paymentIntentId": payload.get("payment_intent"),
            "status": payload.get("status"),
            "amount": payload.get("amount"),
        }
    return None


class WebhookProcessor:
    """Run accepted webhook events through cache, persistence and fan-out.

    Args:
        cache: Recent event cache.
        publisher: In-process consumer fan-out.
        notifier: WebSocket fan-out.
        secret: Webhook signing secret.
        tolerance: Maximum signature age in seconds.
        repository: Transaction store updated on payment intent events.
        events: Payment lifecycle publisher raised on record updates.
        notifications_enabled: Publish accepted events to in-process consumers.
        publish_local_events: Publish locally synthesized events as well.
        metrics: Optional Prometheus relay metrics.
    """

    def __init__(
        self,
        cache: EventCache,
        publisher: WebhookPublisher,
        notifier: RealtimeNotifier,
        *,
        secret: str,
        tolerance: int = verifier.DEFAULT_TOLERANCE,
        repository: TransactionRepository | None = None,
        events: PaymentEventPublisher | None = None,
        notifications_enabled: bool = True,
        publish_local_events: bool = True,
        metrics: RelayMetrics | None = None,
    ) -> None:
        self._cache = cache
        self._publisher = publisher
        self._notifier = notifier
        self._secret = secret
        self._tolerance = tolerance
        self._repository = repository
        self._events = events
        self._notifications_enabled = notifications_enabled
        self._publish_local_events = publish_local_events
        self._metrics = metrics

    @property
    def cache(self) -> EventCache:
        """The recent event cache."""
        return self._cache

    @property
    def publisher(self) -> WebhookPublisher:
        """The in-process consumer publisher."""
        return self._publisher

    @property
    def notifier(self) -> RealtimeNotifier:
        """The WebSocket fan-out."""
        return self._notifier

    @property
    def is_configured(self) -> bool:
        """Whether a signing secret is set."""
        return bool(self._secret)

    @property
    def notifications_enabled(self) -> bool:
        """Whether accepted events are published to in-process consumers."""
        return self._notifications_enabled

    async def handle(self, raw_body: bytes, signature_header: str | None) -> VerifiedEvent:
        """Verify and dispatch one inbound webhook.

        Returns:
            The accepted event.

        Raises:
            VerificationError: The webhook was rejected; nothing was dispatched.
            ConsumerError: A consumer failed and ``continue_on_error`` is off.
        """
        tracker = self._metrics.track_webhook() if self._metrics else nullcontext()
        with tracker:
            try:
                event = verifier.verify(
                    raw_body, signature_header, self._secret, tolerance=self._tolerance
                )
            except VerificationError as exc:
                logger.warning("Webhook rejected (%s): %s", exc.code, exc.message)
                if self._metrics:
                    self._metrics.webhook_rejected(exc.code)
                raise

            logger.info("Webhook event received: %s (%s)", event.id, event.type)
            self._cache.put(event)
            if self._metrics:
                self._metrics.webhook_received(event.type)
                self._metrics.set_cached_event_count(len(self._cache))

            if event.is_payment_intent:
                try:
                    await self._update_transaction(event)
                except Exception:
                    logger.exception("Transaction update failed for event %s", event.id)
            if self._notifications_enabled:
                await self._publisher.publish(event)
            await self._notify_realtime(event, realtime_payload(event))
        return event

    async def publish_local(
        self, event: VerifiedEvent, *, payload: dict[str, Any] | None = None
    ) -> int:
        """Dispatch an event synthesized by a local payment operation.

        Local events are not cached. They reach in-process consumers only when
        both notifications and local publishing are enabled.

        Args:
            event: The synthesized event.
            payload: Realtime summary; derived from *event* when omitted.

        Returns:
            Number of WebSocket deliveries.
        """
        if self._notifications_enabled and self._publish_local_events:
            await self._publisher.publish(event)
        return await self._notify_realtime(event, payload or realtime_payload(event))

    async def _notify_realtime(self, event: VerifiedEvent, payload: dict[str, Any] | None) -> int:
        subject_id = event.subject_id
        if not subject_id or payload is None:
            return 0
        delivered = await self._notifier.notify(subject_id, payload)
        if self._metrics:
            self._metrics.deliveries(delivered)
        return delivered

    async def _update_transaction(self, event: VerifiedEvent) -> None:
        if self._repository is None:
            return
        payment_intent_id = str(event.payload.get("id", ""))
        status = str(event.payload.get("status", ""))
        if not payment_intent_id:
            return

        record = await self._repository.find_by_provider_id(payment_intent_id)
        if record is None:
            logger.debug(
                "No stored transaction for %s; skipping status update",
                sanitize_for_log(payment_intent_id),
            )
            return

        record.set_status(status)
        await self._repository.update(record)
        logger.info("Transaction %s updated to %s from webhook", record.id, status)

        if self._events is None:
            return
        await self._events.publish_record_updated(
            DatabaseEventData(
                payment_intent_id=payment_intent_id, operation="update", record=record
            )
        )
        await self._events.publish_payment_status(
            PaymentEventData(
                payment_intent_id=payment_intent_id,
                amount=int(event.payload.get("amount") or 0),
                currency=str(event.payload.get("currency", "")),
                status=status,
                metadata=dict(event.payload.get("metadata") or {}),
                record=record,
            )
        )
