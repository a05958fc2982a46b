"""Payment, webhook and event endpoints.

Mounted under ``server.base_path`` (``/api/stripe`` by default); the
WebSocket endpoint is mounted at ``server.websocket_path``.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, Query, Request, WebSocket
from fastapi.responses import JSONResponse

from payment_relay.api.dependencies import get_engine, get_ws_engine
from payment_relay.api.schemas import (
    EventResponse,
    HealthResponse,
    PaymentConfirmRequest,
    PaymentRequest,
    PaymentResponse,
    PaymentStatusResponse,
    RefundRequest,
    RefundResponse,
    WebhookAck,
)
from payment_relay.engine import RelayEngine  # noqa: TC001
from payment_relay.payments import service as payments
from payment_relay.utils import sanitize_for_log
from payment_relay.webhooks.verifier import SIGNATURE_HEADER

if TYPE_CHECKING:
    from payment_relay.webhooks.events import VerifiedEvent

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stripe"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _event_resp(event: VerifiedEvent) -> dict:
    return EventResponse(
        id=event.id,
        type=event.type,
        occurred_at=event.occurred_at,
        payload=dict(event.payload),
    ).model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


@router.post("/payment")
async def create_payment(
    body: PaymentRequest,
    request: Request,
    engine: Annotated[RelayEngine, Depends(get_engine)],
) -> dict:
    """Create a payment intent."""
    logger.info("Payment creation request received from %s", _client_host(request))
    intent = await engine.payments.create_payment(
        payments.PaymentRequest(
            amount=body.amount,
            currency=body.currency,
            description=body.description,
            metadata=body.metadata,
        )
    )
    return PaymentResponse(
        id=intent.id,
        status=intent.status,
        amount=intent.amount,
        currency=intent.currency,
        client_secret=intent.client_secret,
        created_at=intent.created,
    ).model_dump(mode="json", by_alias=True)


@router.get("/status/{payment_intent_id}")
async def get_payment_status(
    payment_intent_id: str,
    engine: Annotated[RelayEngine, Depends(get_engine)],
) -> dict:
    """Get the current status of a payment intent."""
    intent = await engine.payments.get_payment_status(payment_intent_id)
    return PaymentStatusResponse(
        id=intent.id,
        status=intent.status,
        amount=intent.amount,
        currency=intent.currency,
        created_at=intent.created,
        updated_at=datetime.now(tz=UTC),
    ).model_dump(mode="json", by_alias=True)


@router.post("/confirm")
async def confirm_payment(
    body: PaymentConfirmRequest,
    request: Request,
    engine: Annotated[RelayEngine, Depends(get_engine)],
) -> dict:
    """Confirm a payment intent with a payment method (test cards by default)."""
    logger.info("Payment confirmation request received from %s", _client_host(request))
    intent = await engine.payments.confirm_payment(
        payments.ConfirmRequest(
            payment_intent_id=body.payment_intent_id,
            payment_method_id=body.payment_method_id,
        )
    )
    return PaymentStatusResponse(
        id=intent.id,
        status=intent.status,
        amount=intent.amount,
        currency=intent.currency,
        created_at=intent.created,
        updated_at=datetime.now(tz=UTC),
    ).model_dump(mode="json", by_alias=True)


@router.post("/refund")
async def process_refund(
    body: RefundRequest,
    request: Request,
    engine: Annotated[RelayEngine, Depends(get_engine)],
) -> dict:
    """Refund a succeeded payment intent, fully or partially."""
    logger.info(
        "Refund request received from %s for %s",
        _client_host(request),
        sanitize_for_log(body.payment_intent_id),
    )
    refund = await engine.payments.process_refund(
        payments.RefundRequest(
            payment_intent_id=body.payment_intent_id,
            amount=body.amount,
            reason=body.reason,
            metadata=body.metadata,
        )
    )
    return RefundResponse(
        id=refund.id,
        payment_intent_id=refund.payment_intent_id or body.payment_intent_id,
        status=refund.status,
        amount=refund.amount,
        currency=refund.currency,
        reason=refund.reason,
        created_at=refund.created,
    ).model_dump(mode="json", by_alias=True)


@router.get("/health")
async def health(engine: Annotated[RelayEngine, Depends(get_engine)]) -> JSONResponse:
    """Report provider connectivity; 503 when unhealthy."""
    report = await engine.payments.get_health()
    body = HealthResponse(
        status=report.status,
        stripe=report.stripe,
        webhooks=report.webhooks,
        websockets=report.websockets,
        connections=report.connections,
        cached_events=report.cached_events,
        timestamp=report.timestamp,
    ).model_dump(mode="json", by_alias=True)
    return JSONResponse(status_code=200 if report.is_healthy else 503, content=body)


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    engine: Annotated[RelayEngine, Depends(get_engine)],
) -> dict:
    """Verify and dispatch a Stripe webhook.

    The raw body is verified byte-for-byte; a rejected webhook is rendered
    as a 400 by the application's error handler.
    """
    logger.info("Webhook request received from %s", _client_host(request))
    raw_body = await request.body()
    event = await engine.processor.handle(raw_body, request.headers.get(SIGNATURE_HEADER))
    logger.info("Webhook event accepted: %s (%s)", event.id, event.type)
    return WebhookAck().model_dump()


@router.get("/events")
async def list_events(
    engine: Annotated[RelayEngine, Depends(get_engine)],
    count: Annotated[int | None, Query(ge=0)] = None,
) -> list[dict]:
    """List cached webhook events, oldest first."""
    return [_event_resp(e) for e in engine.cache.recent(count)]


@router.get("/events/{event_id}")
async def get_event(
    event_id: str,
    engine: Annotated[RelayEngine, Depends(get_engine)],
) -> dict:
    """Get a cached webhook event by id."""
    return _event_resp(engine.cache.get(event_id))


# ---------------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------------


async def websocket_endpoint(
    websocket: WebSocket,
    engine: Annotated[RelayEngine, Depends(get_ws_engine)],
) -> None:
    """Accept a client and serve subscribe/unsubscribe frames until it leaves."""
    await websocket.accept()
    await engine.new_session().run(websocket)
