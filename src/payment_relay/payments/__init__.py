"""Payments — Stripe client and payment operations."""

from __future__ import annotations

from payment_relay.payments.models import PaymentIntent, PaymentIntentStatus, Refund
from payment_relay.payments.service import (
    ConfirmRequest,
    HealthReport,
    PaymentRequest,
    PaymentService,
    RefundRequest,
)
from payment_relay.payments.stripe import PaymentProvider, StripeClient

__all__ = [
    "ConfirmRequest",
    "HealthReport",
    "PaymentIntent",
    "PaymentIntentStatus",
    "PaymentProvider",
    "PaymentRequest",
    "PaymentService",
    "Refund",
    "RefundRequest",
    "StripeClient",
]
