"""Stripe HTTP client — payment intents, refunds, balance.

Provides an async HTTP client for the Stripe REST API (form-encoded):
- POST /v1/payment_intents — Create a payment intent
- GET /v1/payment_intents/{id} — Retrieve a payment intent
- POST /v1/payment_intents/{id}/confirm — Confirm with a payment method
- POST /v1/refunds — Refund a payment intent
- GET /v1/balance — Account balance (connectivity check)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from payment_relay.errors import ProviderError
from payment_relay.payments.models import PaymentIntent, Refund

if TYPE_CHECKING:
    from collections.abc import Mapping

    from payment_relay.config.settings import StripeConfig

logger = logging.getLogger(__name__)


@runtime_checkable
class PaymentProvider(Protocol):
    """Operations the payment service needs from a payment provider."""

    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        *,
        description: str | None = None,
        metadata: Mapping[str, str] | None = None,
        allow_redirects: bool = False,
    ) -> PaymentIntent: ...

    async def get_payment_intent(
        self, payment_intent_id: str, *, expand_payment_method: bool = False
    ) -> PaymentIntent: ...

    async def confirm_payment_intent(
        self,
        payment_intent_id: str,
        payment_method: str,
        *,
        return_url: str | None = None,
    ) -> PaymentIntent: ...

    async def create_refund(
        self,
        payment_intent_id: str,
        *,
        amount: int | None = None,
        reason: str | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> Refund: ...

    async def get_balance(self) -> dict[str, Any]: ...


def _encode_metadata(form: dict[str, Any], metadata: Mapping[str, str] | None) -> None:
    for key, value in (metadata or {}).items():
        form[f"metadata[{key}]"] = value


class StripeClient:
    """Async HTTP client for the Stripe API.

    Usage::

        stripe = StripeClient(config)
        await stripe.connect()
        try:
            intent = await stripe.create_payment_intent(2000, "usd")
        finally:
            await stripe.close()
    """

    def __init__(
        self,
        config: StripeConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the Stripe client.

        Args:
            config: Stripe configuration (api key, api url, timeout).
            transport: Optional httpx transport (used to inject mocks).
        """
        self._config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        headers: dict[str, str] = {}
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"

        self._client = httpx.AsyncClient(
            base_url=self._config.api_url.rstrip("/"),
            headers=headers,
            timeout=self._config.timeout,
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        """Check if the HTTP client is active."""
        return self._client is not None

    @property
    def is_configured(self) -> bool:
        """Whether an API key is set."""
        return bool(self._config.api_key)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        *,
        description: str | None = None,
        metadata: Mapping[str, str] | None = None,
        allow_redirects: bool = False,
    ) -> PaymentIntent:
        """Create a payment intent with automatic payment methods.

        Args:
            amount: Amount in minor currency units.
            currency: ISO currency code.
            description: Optional description shown in the dashboard.
            metadata: Optional key/value metadata.
            allow_redirects: Allow redirect-based payment methods.

        Returns:
            The created ``PaymentIntent``.

        Raises:
            ProviderError: On HTTP or API errors.
        """
        form: dict[str, Any] = {
            "amount": str(amount),
            "currency": currency,
            "automatic_payment_methods[enabled]": "true",
            "automatic_payment_methods[allow_redirects]": "always" if allow_redirects else "never",
        }
        if description:
            form["description"] = description
        _encode_metadata(form, metadata)

        data = await self._request(
            "POST", "/v1/payment_intents", "create_payment_intent", data=form
        )
        return PaymentIntent.from_dict(data)

    async def get_payment_intent(
        self, payment_intent_id: str, *, expand_payment_method: bool = False
    ) -> PaymentIntent:
        """Retrieve a payment intent.

        Args:
            payment_intent_id: Payment intent id (``pi_...``).
            expand_payment_method: Expand ``payment_method`` (card details).

        Raises:
            ProviderError: On HTTP or API errors.
        """
        params = {"expand[]": "payment_method"} if expand_payment_method else None
        data = await self._request(
            "GET",
            f"/v1/payment_intents/{payment_intent_id}",
            "get_payment_intent",
            params=params,
        )
        return PaymentIntent.from_dict(data)

    async def confirm_payment_intent(
        self,
        payment_intent_id: str,
        payment_method: str,
        *,
        return_url: str | None = None,
    ) -> PaymentIntent:
        """Confirm a payment intent with *payment_method*.

        Raises:
            ProviderError: On HTTP or API errors.
        """
        form: dict[str, Any] = {"payment_method": payment_method}
        if return_url:
            form["return_url"] = return_url
        data = await self._request(
            "POST",
            f"/v1/payment_intents/{payment_intent_id}/confirm",
            "confirm_payment_intent",
            data=form,
        )
        return PaymentIntent.from_dict(data)

    async def create_refund(
        self,
        payment_intent_id: str,
        *,
        amount: int | None = None,
        reason: str | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> Refund:
        """Refund a payment intent; omitting *amount* refunds it in full.

        Raises:
            ProviderError: On HTTP or API errors.
        """
        form: dict[str, Any] = {"payment_intent": payment_intent_id}
        if amount is not None:
            form["amount"] = str(amount)
        if reason:
            form["reason"] = reason
        _encode_metadata(form, metadata)
        data = await self._request("POST", "/v1/refunds", "create_refund", data=form)
        return Refund.from_dict(data)

    async def get_balance(self) -> dict[str, Any]:
        """Retrieve the account balance.

        Raises:
            ProviderError: On HTTP or API errors.
        """
        return await self._request("GET", "/v1/balance", "get_balance")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_connected(self) -> httpx.AsyncClient:
        """Return the HTTP client, raising if not connected."""
        if self._client is None:
            msg = "Stripe client not connected. Call connect() first."
            raise ProviderError(msg, status_code=500)
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        client = self._ensure_connected()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Stripe %s request failed: %s", operation, exc)
            raise ProviderError(f"Stripe {operation} failed: {exc}") from exc

        if response.status_code == 200:
            return response.json()

        self._raise_for_status(response, operation)
        return {}  # unreachable

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        """Raise a ProviderError from a non-2xx response."""
        status = response.status_code
        try:
            error = response.json().get("error") or {}
        except ValueError:
            error = {}
        if not isinstance(error, dict):
            error = {}

        error_type = error.get("type", "")
        error_code = error.get("code", "")
        detail = error.get("message") or response.text or "no detail"
        logger.error(
            "Stripe API error during %s: status=%s type=%s code=%s param=%s message=%s",
            operation,
            status,
            error_type or "unknown",
            error_code or "unknown",
            error.get("param"),
            detail,
        )

        error_map = {
            401: "Stripe authentication failed",
            429: "Stripe rate limit exceeded",
        }
        message = error_map.get(status, f"Stripe {operation} failed ({status}): {detail}")
        # Caller mistakes keep their 4xx status; everything else is a bad gateway.
        http_status = status if status in (400, 402, 404) else 502
        raise ProviderError(
            message,
            status_code=http_status,
            error_type=error_type,
            error_code=error_code,
        )
