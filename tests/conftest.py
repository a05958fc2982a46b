"""Shared test fixtures for the payment-relay test suite."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import pytest
from fastapi.testclient import TestClient

from payment_relay.api.app import create_app
from payment_relay.config.settings import (
    AppConfig,
    DatabaseConfig,
    MetricsConfig,
    StripeConfig,
)
from payment_relay.errors import ProviderError
from payment_relay.payments.models import PaymentIntent, Refund

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping

WEBHOOK_SECRET = "whsec_test_secret"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def webhook_secret() -> str:
    return WEBHOOK_SECRET


@pytest.fixture
def app_config() -> AppConfig:
    """Provide a test AppConfig with safe defaults (no DB, no network)."""
    return AppConfig(
        debug=True,
        stripe=StripeConfig(
            api_key="sk_test_123",
            webhook_secret=WEBHOOK_SECRET,
            api_url="https://stripe.test",
        ),
        metrics=MetricsConfig(enabled=True, prometheus=True, logging_sink=False),
        db=DatabaseConfig(enabled=False),
    )


# ---------------------------------------------------------------------------
# Webhook bodies
# ---------------------------------------------------------------------------


def build_event_body(
    event_id: str = "evt_1",
    event_type: str = "payment_intent.succeeded",
    obj: Mapping[str, Any] | None = None,
    created: int = 1_700_000_000,
) -> bytes:
    """Serialize a Stripe-shaped event envelope."""
    if obj is None:
        obj = {
            "id": "pi_123",
            "object": "payment_intent",
            "status": "succeeded",
            "amount": 2000,
            "currency": "usd",
        }
    envelope = {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": created,
        "data": {"object": dict(obj)},
    }
    return json.dumps(envelope).encode()


@pytest.fixture
def event_body() -> Callable[..., bytes]:
    """Factory fixture for webhook bodies."""
    return build_event_body


# ---------------------------------------------------------------------------
# WebSocket transport double
# ---------------------------------------------------------------------------


class FakeTransport:
    """In-memory ``Transport``: records sends, replays queued receives."""

    def __init__(self, *, fail_send: bool = False, send_delay: float = 0.0) -> None:
        self.sent: list[str] = []
        self.closed: tuple[int, str | None] | None = None
        self.fail_send = fail_send
        self.send_delay = send_delay
        self._inbox: asyncio.Queue[str | bytes | dict[str, Any] | BaseException] = asyncio.Queue()

    async def send_text(self, data: str) -> None:
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        if self.fail_send:
            msg = "socket is closed"
            raise RuntimeError(msg)
        self.sent.append(data)

    async def receive(self) -> dict[str, Any]:
        item = await self._inbox.get()
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, dict):
            return item
        if isinstance(item, bytes):
            return {"type": "websocket.receive", "bytes": item}
        return {"type": "websocket.receive", "text": item}

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed = (code, reason)

    def feed(self, item: str | bytes | dict[str, Any] | BaseException) -> None:
        self._inbox.put_nowait(item)

    def sent_json(self) -> list[dict[str, Any]]:
        return [json.loads(s) for s in self.sent]


@pytest.fixture
def transport_factory() -> Callable[..., FakeTransport]:
    return FakeTransport


# ---------------------------------------------------------------------------
# Payment provider double
# ---------------------------------------------------------------------------


class FakeProvider:
    """In-memory ``PaymentProvider`` keyed by payment intent id."""

    def __init__(self) -> None:
        self.intents: dict[str, dict[str, Any]] = {}
        self.refunds: list[dict[str, Any]] = []
        self.calls: list[tuple[str, Any]] = []
        self.confirm_status = "succeeded"
        self.refund_status = "succeeded"
        self.refund_error: ProviderError | None = None
        self.balance_error: ProviderError | None = None
        self._counter = 0

    def add_intent(self, intent_id: str, status: str, amount: int = 2000) -> None:
        self.intents[intent_id] = {
            "id": intent_id,
            "object": "payment_intent",
            "status": status,
            "amount": amount,
            "currency": "usd",
            "client_secret": f"{intent_id}_secret",
            "created": 1_700_000_000,
            "metadata": {},
        }

    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        *,
        description: str | None = None,
        metadata: Mapping[str, str] | None = None,
        allow_redirects: bool = False,
    ) -> PaymentIntent:
        self._counter += 1
        intent_id = f"pi_fake_{self._counter}"
        self.add_intent(intent_id, "requires_payment_method", amount)
        self.intents[intent_id]["currency"] = currency
        self.intents[intent_id]["metadata"] = dict(metadata or {})
        self.calls.append(("create", amount))
        return PaymentIntent.from_dict(self.intents[intent_id])

    async def get_payment_intent(
        self, payment_intent_id: str, *, expand_payment_method: bool = False
    ) -> PaymentIntent:
        self.calls.append(("get", payment_intent_id))
        data = self.intents.get(payment_intent_id)
        if data is None:
            msg = f"No such payment_intent: '{payment_intent_id}'"
            raise ProviderError(msg, status_code=404, error_code="resource_missing")
        return PaymentIntent.from_dict(data)

    async def confirm_payment_intent(
        self,
        payment_intent_id: str,
        payment_method: str,
        *,
        return_url: str | None = None,
    ) -> PaymentIntent:
        self.calls.append(("confirm", payment_intent_id))
        data = self.intents[payment_intent_id]
        data["status"] = self.confirm_status
        data["payment_method"] = payment_method
        return PaymentIntent.from_dict(data)

    async def create_refund(
        self,
        payment_intent_id: str,
        *,
        amount: int | None = None,
        reason: str | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> Refund:
        self.calls.append(("refund", payment_intent_id))
        if self.refund_error is not None:
            raise self.refund_error
        intent = self.intents[payment_intent_id]
        refund = {
            "id": f"re_{len(self.refunds) + 1}",
            "object": "refund",
            "payment_intent": payment_intent_id,
            "status": self.refund_status,
            "amount": amount if amount is not None else intent["amount"],
            "currency": intent["currency"],
            "reason": reason,
            "created": 1_700_000_100,
        }
        self.refunds.append(refund)
        return Refund.from_dict(refund)

    async def get_balance(self) -> dict[str, Any]:
        self.calls.append(("balance", None))
        if self.balance_error is not None:
            raise self.balance_error
        return {"object": "balance", "available": []}


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@pytest.fixture
def client(app_config: AppConfig, provider: FakeProvider) -> Iterator[TestClient]:
    """Running application (lifespan entered) backed by the fake provider."""
    app = create_app(config=app_config, provider=provider)
    with TestClient(app) as test_client:
        yield test_client
