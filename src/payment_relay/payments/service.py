"""Payment service — create, confirm, refund and inspect payments.

Each operation talks to the provider, keeps the stored transaction record
in step, raises payment lifecycle events and pushes the result through the
same dispatch path as inbound webhooks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from payment_relay.datastore.models import TransactionRecord
from payment_relay.errors import InvalidRequestError, ProviderError
from payment_relay.notifications.listeners import (
    DatabaseEventData,
    PaymentEventData,
    PaymentEventPublisher,
    RefundEventData,
)
from payment_relay.payments.models import PaymentIntentStatus, describe_status
from payment_relay.utils import sanitize_for_log
from payment_relay.webhooks.events import VerifiedEvent

if TYPE_CHECKING:
    from payment_relay.config.settings import StripeConfig
    from payment_relay.datastore.repository import TransactionRepository
    from payment_relay.payments.models import PaymentIntent, Refund
    from payment_relay.payments.stripe import PaymentProvider
    from payment_relay.realtime.registry import ConnectionRegistry
    from payment_relay.webhooks.processor import WebhookProcessor

logger = logging.getLogger(__name__)

_STATUS_EVENT_TYPES: dict[str, str] = {
    PaymentIntentStatus.SUCCEEDED: "payment_intent.succeeded",
    PaymentIntentStatus.CANCELED: "payment_intent.canceled",
    PaymentIntentStatus.PROCESSING: "payment_intent.processing",
    PaymentIntentStatus.REQUIRES_PAYMENT_METHOD: "payment_intent.payment_failed",
    PaymentIntentStatus.REQUIRES_ACTION: "payment_intent.requires_action",
    PaymentIntentStatus.REQUIRES_CAPTURE: "payment_intent.amount_capturable_updated",
}


def event_type_for_status(status: str) -> str:
    """Provider event type matching a payment intent *status*."""
    return _STATUS_EVENT_TYPES.get(status, "payment_intent.updated")


# ---------------------------------------------------------------------------
# Requests / results
# ---------------------------------------------------------------------------


@dataclass
class PaymentRequest:
    """Create-payment input."""

    amount: int
    currency: str = "usd"
    description: str | None = None
    metadata: dict[str, str] | None = None


@dataclass
class ConfirmRequest:
    """Confirm-payment input."""

    payment_intent_id: str
    payment_method_id: str = "pm_card_visa"


@dataclass
class RefundRequest:
    """Refund input; ``amount=None`` refunds in full."""

    payment_intent_id: str
    amount: int | None = None
    reason: str | None = None
    metadata: dict[str, str] | None = None


@dataclass
class HealthReport:
    """Result of a health check."""

    status: str
    stripe: str
    webhooks: str
    websockets: str = "enabled"
    connections: int = 0
    cached_events: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def is_healthy(self) -> bool:
        """Whether the overall status is ``healthy``."""
        return self.status == "healthy"


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class PaymentService:
    """Payment operations on top of a ``PaymentProvider``.

    Usage::

        service = PaymentService(stripe, repository, events, processor, config.stripe)
        intent = await service.create_payment(PaymentRequest(amount=2000))
    """

    def __init__(
        self,
        provider: PaymentProvider,
        repository: TransactionRepository,
        events: PaymentEventPublisher | None,
        pipeline: WebhookProcessor | None,
        config: StripeConfig,
        *,
        capture_extended_data: bool = False,
        registry: ConnectionRegistry | None = None,
    ) -> None:
        self._provider = provider
        self._repository = repository
        self._events = events or PaymentEventPublisher()
        self._pipeline = pipeline
        self._config = config
        self._capture_extended = capture_extended_data
        self._registry = registry

    # -- Create --

    async def create_payment(self, request: PaymentRequest) -> PaymentIntent:
        """Create a payment intent and its transaction record.

        Raises:
            InvalidRequestError: If the amount is not positive.
            ProviderError: On provider failures.
        """
        if request.amount <= 0:
            msg = "Amount must be greater than zero"
            raise InvalidRequestError(msg)

        logger.info("Creating payment intent for %s %s", request.amount, request.currency)
        intent = await self._provider.create_payment_intent(
            request.amount,
            request.currency,
            description=request.description,
            metadata=request.metadata,
            allow_redirects=bool(self._config.success_url),
        )

        record = TransactionRecord.new(
            intent.id,
            status=intent.status,
            amount=intent.amount,
            currency=intent.currency,
            client_secret=intent.client_secret,
            metadata=request.metadata,
            created_at=intent.created,
        )
        if self._capture_extended:
            record.apply_extended(intent)
        await self._repository.create(record)

        await self._events.publish_record_created(
            DatabaseEventData(payment_intent_id=intent.id, operation="create", record=record)
        )
        await self._events.publish_payment_created(
            PaymentEventData(
                payment_intent_id=intent.id,
                amount=intent.amount,
                currency=intent.currency,
                status=intent.status,
                metadata=request.metadata,
                record=record,
            )
        )
        await self._dispatch("payment_intent.created", intent.to_payload())

        logger.info(
            "Payment intent created: %s status=%s amount=%s %s",
            intent.id,
            intent.status,
            intent.amount,
            intent.currency,
        )
        return intent

    # -- Status --

    async def get_payment_status(self, payment_intent_id: str) -> PaymentIntent:
        """Fetch the current intent and refresh the stored record.

        Raises:
            InvalidRequestError: If the id is blank.
            ProviderError: On provider failures.
        """
        self._require_id(payment_intent_id, "Payment intent ID is required")
        safe_id = sanitize_for_log(payment_intent_id)
        logger.info("Retrieving payment status for %s", safe_id)

        intent = await self._provider.get_payment_intent(
            payment_intent_id, expand_payment_method=self._capture_extended
        )
        record = await self._repository.find_by_provider_id(payment_intent_id)
        if record is not None:
            record.set_status(intent.status)
            if self._capture_extended:
                record.apply_extended(intent)
            await self._repository.update(record)

        logger.info("Payment status for %s: %s", safe_id, intent.status)
        return intent

    # -- Confirm --

    async def confirm_payment(self, request: ConfirmRequest) -> PaymentIntent:
        """Confirm an intent with a payment method and notify subscribers.

        Raises:
            InvalidRequestError: If either id is blank.
            ProviderError: On provider failures.
        """
        self._require_id(request.payment_intent_id, "Payment intent ID is required")
        self._require_id(request.payment_method_id, "Payment method ID is required")
        logger.info(
            "Confirming payment intent %s with payment method %s",
            sanitize_for_log(request.payment_intent_id),
            sanitize_for_log(request.payment_method_id),
        )

        intent = await self._provider.confirm_payment_intent(
            request.payment_intent_id,
            request.payment_method_id,
            return_url=self._config.success_url or None,
        )

        record = await self._repository.find_by_provider_id(request.payment_intent_id)
        if record is not None:
            record.set_status(intent.status)
            await self._repository.update(record)
            await self._events.publish_record_updated(
                DatabaseEventData(payment_intent_id=intent.id, operation="update", record=record)
            )
        await self._events.publish_payment_status(
            PaymentEventData(
                payment_intent_id=intent.id,
                amount=intent.amount,
                currency=intent.currency,
                status=intent.status,
                metadata=intent.metadata or None,
                record=record,
            )
        )
        await self._dispatch(event_type_for_status(intent.status), intent.to_payload())

        logger.info("Payment intent %s confirmed: %s", intent.id, intent.status)
        return intent

    # -- Refund --

    async def process_refund(self, request: RefundRequest) -> Refund:
        """Refund a succeeded payment intent.

        Raises:
            InvalidRequestError: If the id is blank or the intent has not succeeded.
            ProviderError: On provider failures.
        """
        self._require_id(request.payment_intent_id, "Payment intent ID is required")
        safe_id = sanitize_for_log(request.payment_intent_id)
        logger.info("Processing refund for %s amount=%s", safe_id, request.amount)

        intent = await self._provider.get_payment_intent(request.payment_intent_id)
        if intent.status != PaymentIntentStatus.SUCCEEDED:
            description = describe_status(intent.status)
            logger.warning(
                "Cannot refund %s with status %s: %s", safe_id, intent.status, description
            )
            msg = (
                f"Cannot refund payment intent '{request.payment_intent_id}' with status "
                f"'{intent.status}'. Only payment intents with status 'succeeded' can be "
                f"refunded. {description}"
            )
            raise InvalidRequestError(msg)

        try:
            refund = await self._provider.create_refund(
                request.payment_intent_id,
                amount=request.amount,
                reason=request.reason,
                metadata=request.metadata,
            )
        except ProviderError as exc:
            msg = f"Failed to process refund: {exc.message}"
            raise InvalidRequestError(msg) from exc

        record = await self._repository.find_by_provider_id(request.payment_intent_id)
        if record is not None:
            record.set_status(f"refunded_{refund.status}")
            await self._repository.update(record)
            await self._events.publish_record_updated(
                DatabaseEventData(
                    payment_intent_id=request.payment_intent_id,
                    operation="update",
                    record=record,
                )
            )

        await self._events.publish_refund_status(
            RefundEventData(
                payment_intent_id=request.payment_intent_id,
                refund_id=refund.id,
                amount=refund.amount,
                currency=refund.currency,
                status=refund.status,
                reason=refund.reason,
                metadata=request.metadata,
                record=record,
            )
        )

        payload = refund.to_payload()
        payload.setdefault("payment_intent", request.payment_intent_id)
        await self._dispatch(
            "charge.refund.updated",
            payload,
            realtime={
                "id": request.payment_intent_id,
                "status": f"refunded_{refund.status}",
                "refundId": refund.id,
                "refundAmount": refund.amount,
                "refundStatus": refund.status,
            },
        )

        logger.info(
            "Refund %s for %s: status=%s amount=%s",
            refund.id,
            safe_id,
            refund.status,
            refund.amount,
        )
        return refund

    # -- Health --

    async def get_health(self) -> HealthReport:
        """Check provider connectivity and local configuration."""
        if not self._config.webhook_secret:
            webhooks = "not_configured"
        elif self._pipeline is not None and not self._pipeline.notifications_enabled:
            webhooks = "disabled"
        else:
            webhooks = "enabled"
        report = HealthReport(status="unhealthy", stripe="not_configured", webhooks=webhooks)
        if self._registry is not None:
            report.connections = len(self._registry)
        if self._pipeline is not None:
            report.cached_events = len(self._pipeline.cache)

        if not self._config.api_key:
            logger.warning("Health check failed: Stripe API key not configured")
            return report

        try:
            await self._provider.get_balance()
        except ProviderError as exc:
            logger.error(
                "Health check failed: Stripe unreachable (%s %s): %s",
                exc.error_type or "unknown",
                exc.error_code or "unknown",
                exc.message,
            )
            report.stripe = "disconnected"
            return report

        report.stripe = "connected"
        report.status = "healthy"
        logger.info(
            "Health check passed: stripe=%s webhooks=%s websockets=%s",
            report.stripe,
            report.webhooks,
            report.websockets,
        )
        return report

    # -- Helpers --

    @staticmethod
    def _require_id(value: str | None, message: str) -> None:
        if not value or not value.strip():
            raise InvalidRequestError(message)

    async def _dispatch(
        self,
        event_type: str,
        payload: dict[str, Any],
        *,
        realtime: dict[str, Any] | None = None,
    ) -> None:
        if self._pipeline is None:
            return
        event = VerifiedEvent.synthesize(event_type, payload)
        await self._pipeline.publish_local(event, payload=realtime)
