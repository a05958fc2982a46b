"""Webhook signature verification — Stripe v1 scheme.

Stripe sends a ``Stripe-Signature`` header of the form::

    t=<unix timestamp>,v1=<hex signature>[,v1=<hex signature>...]

The expected signature is ``HMAC-SHA256(secret, f"{t}." + body)`` in hex.

Security contract:
- All comparisons use ``hmac.compare_digest`` (constant time)
- Empty secret -> ``WebhookNotConfiguredError`` before any crypto work
- Timestamps outside the tolerance window are rejected (replay protection)
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from datetime import UTC, datetime
from typing import Any

from payment_relay.errors import (
    MalformedPayloadError,
    SignatureMismatchError,
    SignatureMissingError,
    TimestampOutOfToleranceError,
    WebhookNotConfiguredError,
)
from payment_relay.webhooks.events import VerifiedEvent

SIGNATURE_HEADER = "Stripe-Signature"
DEFAULT_TOLERANCE = 300
_SCHEME = "v1"


def compute_signature(raw_body: bytes, secret: str, timestamp: int) -> str:
    """Return the hex v1 signature for *raw_body* signed at *timestamp*."""
    signed_payload = f"{timestamp}.".encode() + raw_body
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def sign(raw_body: bytes, secret: str, timestamp: int | None = None) -> str:
    """Build a ``Stripe-Signature`` header value for *raw_body*."""
    ts = int(time.time()) if timestamp is None else timestamp
    return f"t={ts},{_SCHEME}={compute_signature(raw_body, secret, ts)}"


def _parse_header(signature_header: str) -> tuple[int, list[str]]:
    timestamp: int | None = None
    signatures: list[str] = []
    for item in signature_header.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError as exc:
                raise SignatureMismatchError("invalid timestamp in signature header") from exc
        elif key == _SCHEME and value:
            signatures.append(value)

    if timestamp is None:
        raise SignatureMismatchError("no timestamp in signature header")
    if not signatures:
        raise SignatureMismatchError("no v1 signature in signature header")
    return timestamp, signatures


def _parse_event(raw_body: bytes, signed_at: int) -> VerifiedEvent:
    try:
        data: Any = json.loads(raw_body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedPayloadError("webhook body is not valid JSON") from exc

    if not isinstance(data, dict):
        raise MalformedPayloadError("webhook body is not a JSON object")
    event_id = data.get("id")
    event_type = data.get("type")
    if not isinstance(event_id, str) or not event_id:
        raise MalformedPayloadError("webhook event has no id")
    if not isinstance(event_type, str) or not event_type:
        raise MalformedPayloadError("webhook event has no type")

    created = data.get("created", signed_at)
    if not isinstance(created, int | float):
        created = signed_at
    envelope = data.get("data") or {}
    obj = (envelope.get("object") or {}) if isinstance(envelope, dict) else None
    if not isinstance(obj, dict):
        raise MalformedPayloadError("webhook data.object is not an object")

    return VerifiedEvent(
        id=event_id,
        type=event_type,
        occurred_at=datetime.fromtimestamp(created, tz=UTC),
        payload=obj,
    )


def verify(
    raw_body: bytes,
    signature_header: str | None,
    shared_secret: str,
    *,
    tolerance: int = DEFAULT_TOLERANCE,
    now: float | None = None,
) -> VerifiedEvent:
    """Verify a signed webhook body and parse it into a ``VerifiedEvent``.

    Args:
        raw_body: Exact request body bytes as received.
        signature_header: Value of the ``Stripe-Signature`` header.
        shared_secret: Webhook signing secret (``whsec_...``).
        tolerance: Maximum allowed distance in seconds between the signed
            timestamp and *now*.
        now: Current unix time; defaults to ``time.time()``.

    Returns:
        The parsed event.

    Raises:
        WebhookNotConfiguredError: If *shared_secret* is empty.
        SignatureMissingError: If the header is absent or empty.
        SignatureMismatchError: If the header is malformed or no signature matches.
        TimestampOutOfToleranceError: If the signed timestamp is too old or too new.
        MalformedPayloadError: If the body is not a well-formed event.
    """
    if not shared_secret:
        raise WebhookNotConfiguredError
    if not signature_header or not signature_header.strip():
        raise SignatureMissingError

    timestamp, signatures = _parse_header(signature_header)

    current = time.time() if now is None else now
    if abs(current - timestamp) > tolerance:
        raise TimestampOutOfToleranceError

    expected = compute_signature(raw_body, shared_secret, timestamp).encode()
    # compare_digest rejects non-ASCII str, so compare encoded bytes
    if not any(
        hmac.compare_digest(expected, sig.encode("utf-8", "replace")) for sig in signatures
    ):
        raise SignatureMismatchError

    return _parse_event(raw_body, timestamp)
