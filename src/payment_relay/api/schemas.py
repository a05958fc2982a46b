"""API request/response Pydantic schemas.

These define the HTTP contract only. Route handlers map service results
(``PaymentIntent``, ``Refund``, ``HealthReport``, ``VerifiedEvent``) onto
them; JSON field names are camelCase.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - Pydantic needs this at runtime
from typing import Any

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Generic
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Standard error body ``{"code": "...", "message": "..."}``."""

    code: str
    message: str


class WebhookAck(BaseModel):
    """Body returned for an accepted webhook."""

    received: bool = True


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


class PaymentRequest(BaseModel):
    """POST {base}/payment — create a payment intent."""

    amount: int = Field(..., description="Amount in minor currency units")
    currency: str = "usd"
    description: str | None = None
    metadata: dict[str, str] | None = None


class PaymentResponse(BaseModel):
    """Created payment intent, including the client secret."""

    id: str
    status: str
    amount: int
    currency: str
    client_secret: str | None = Field(None, alias="clientSecret")
    created_at: datetime = Field(alias="createdAt")

    model_config = {"populate_by_name": True}


class PaymentStatusResponse(BaseModel):
    """Current status of a payment intent."""

    id: str
    status: str
    amount: int
    currency: str
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime | None = Field(None, alias="updatedAt")

    model_config = {"populate_by_name": True}


class PaymentConfirmRequest(BaseModel):
    """POST {base}/confirm — confirm with a payment method."""

    payment_intent_id: str = Field("", alias="paymentIntentId")
    payment_method_id: str = Field("pm_card_visa", alias="paymentMethodId")

    model_config = {"populate_by_name": True}


# ---------------------------------------------------------------------------
# Refunds
# ---------------------------------------------------------------------------


class RefundRequest(BaseModel):
    """POST {base}/refund — refund a succeeded payment intent."""

    payment_intent_id: str = Field("", alias="paymentIntentId")
    amount: int | None = Field(None, gt=0, description="Omit for a full refund")
    reason: str | None = None
    metadata: dict[str, str] | None = None

    model_config = {"populate_by_name": True}


class RefundResponse(BaseModel):
    """A created refund."""

    id: str
    payment_intent_id: str = Field(alias="paymentIntentId")
    status: str
    amount: int
    currency: str
    reason: str | None = None
    created_at: datetime = Field(alias="createdAt")

    model_config = {"populate_by_name": True}


# ---------------------------------------------------------------------------
# Health / events
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """GET {base}/health."""

    status: str
    stripe: str
    webhooks: str
    websockets: str
    connections: int = 0
    cached_events: int = Field(0, alias="cachedEvents")
    timestamp: datetime

    model_config = {"populate_by_name": True}


class EventResponse(BaseModel):
    """A cached webhook event."""

    id: str
    type: str
    occurred_at: datetime = Field(alias="occurredAt")
    payload: dict[str, Any]

    model_config = {"populate_by_name": True}
