"""Stripe data models — PaymentIntent, Refund, status descriptions.

Data classes representing the subset of Stripe API objects the relay reads.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

# ---------------------------------------------------------------------------
# Payment intent status enum
# ---------------------------------------------------------------------------


class PaymentIntentStatus(enum.StrEnum):
    """Stripe payment intent statuses.

    Lifecycle: REQUIRES_PAYMENT_METHOD → REQUIRES_CONFIRMATION → REQUIRES_ACTION
               → PROCESSING → REQUIRES_CAPTURE → SUCCEEDED | CANCELED
    """

    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    REQUIRES_ACTION = "requires_action"
    PROCESSING = "processing"
    REQUIRES_CAPTURE = "requires_capture"
    CANCELED = "canceled"
    SUCCEEDED = "succeeded"


_STATUS_DESCRIPTIONS: dict[str, str] = {
    PaymentIntentStatus.REQUIRES_PAYMENT_METHOD: (
        "The payment intent requires a payment method to be attached."
    ),
    PaymentIntentStatus.REQUIRES_CONFIRMATION: "The payment intent requires confirmation.",
    PaymentIntentStatus.REQUIRES_ACTION: (
        "The payment intent requires additional action (e.g., 3D Secure authentication)."
    ),
    PaymentIntentStatus.PROCESSING: "The payment is currently being processed.",
    PaymentIntentStatus.REQUIRES_CAPTURE: "The payment has been authorized but not yet captured.",
    PaymentIntentStatus.CANCELED: "The payment intent has been canceled.",
    PaymentIntentStatus.SUCCEEDED: "The payment has been successfully completed.",
}


def describe_status(status: str) -> str:
    """Human-readable explanation of a payment intent status."""
    return _STATUS_DESCRIPTIONS.get(status, f"Unknown status: {status}")


def _timestamp(value: Any) -> datetime:
    if isinstance(value, int | float) and value > 0:
        return datetime.fromtimestamp(value, tz=UTC)
    return datetime.now(tz=UTC)


def _optional_int(value: Any) -> int | None:
    return int(value) if isinstance(value, int | float) else None


# ---------------------------------------------------------------------------
# PaymentIntent
# ---------------------------------------------------------------------------


@dataclass
class PaymentIntent:
    """A Stripe payment intent.

    Attributes:
        id: Payment intent id (``pi_...``).
        status: Raw status string (see :class:`PaymentIntentStatus`).
        amount: Amount in minor currency units.
        currency: Lower-case ISO currency code.
        client_secret: Secret handed to the browser for confirmation.
        created: Creation time.
        payment_method_id: Attached payment method id, if any.
        payment_method_type: Payment method type when the method was expanded.
        raw: The full object as returned by the API.
    """

    id: str = ""
    status: str = ""
    amount: int = 0
    currency: str = ""
    client_secret: str | None = None
    created: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    description: str | None = None
    customer: str | None = None
    receipt_email: str | None = None
    amount_capturable: int = 0
    amount_received: int = 0
    application_fee_amount: int | None = None
    payment_method_id: str | None = None
    payment_method_type: str | None = None
    card_last4: str | None = None
    card_brand: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PaymentIntent:
        """Create from a Stripe API JSON object."""
        payment_method = data.get("payment_method")
        pm_id: str | None = None
        pm_type: str | None = None
        card_last4: str | None = None
        card_brand: str | None = None
        if isinstance(payment_method, dict):
            pm_id = payment_method.get("id")
            pm_type = payment_method.get("type")
            card = payment_method.get("card") or {}
            card_last4 = card.get("last4")
            card_brand = card.get("brand")
        elif isinstance(payment_method, str):
            pm_id = payment_method

        customer = data.get("customer")
        if isinstance(customer, dict):
            customer = customer.get("id")

        return cls(
            id=data.get("id", ""),
            status=data.get("status", ""),
            amount=int(data.get("amount") or 0),
            currency=data.get("currency", ""),
            client_secret=data.get("client_secret"),
            created=_timestamp(data.get("created")),
            description=data.get("description"),
            customer=customer,
            receipt_email=data.get("receipt_email"),
            amount_capturable=int(data.get("amount_capturable") or 0),
            amount_received=int(data.get("amount_received") or 0),
            application_fee_amount=_optional_int(data.get("application_fee_amount")),
            payment_method_id=pm_id,
            payment_method_type=pm_type,
            card_last4=card_last4,
            card_brand=card_brand,
            metadata=dict(data.get("metadata") or {}),
            raw=dict(data),
        )

    def to_payload(self) -> dict[str, Any]:
        """Return the object in Stripe's wire shape."""
        if self.raw:
            return dict(self.raw)
        return {
            "id": self.id,
            "object": "payment_intent",
            "status": self.status,
            "amount": self.amount,
            "currency": self.currency,
            "created": int(self.created.timestamp()),
            "metadata": dict(self.metadata),
        }


# ---------------------------------------------------------------------------
# Refund
# ---------------------------------------------------------------------------


@dataclass
class Refund:
    """A Stripe refund."""

    id: str = ""
    payment_intent_id: str = ""
    status: str = ""
    amount: int = 0
    currency: str = ""
    reason: str | None = None
    created: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    metadata: dict[str, str] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Refund:
        """Create from a Stripe API JSON object."""
        payment_intent = data.get("payment_intent")
        if isinstance(payment_intent, dict):
            payment_intent = payment_intent.get("id", "")
        return cls(
            id=data.get("id", ""),
            payment_intent_id=payment_intent or "",
            status=data.get("status", ""),
            amount=int(data.get("amount") or 0),
            currency=data.get("currency", ""),
            reason=data.get("reason"),
            created=_timestamp(data.get("created")),
            metadata=dict(data.get("metadata") or {}),
            raw=dict(data),
        )

    def to_payload(self) -> dict[str, Any]:
        """Return the object in Stripe's wire shape."""
        if self.raw:
            return dict(self.raw)
        return {
            "id": self.id,
            "object": "refund",
            "payment_intent": self.payment_intent_id,
            "status": self.status,
            "amount": self.amount,
            "currency": self.currency,
            "reason": self.reason,
        }
