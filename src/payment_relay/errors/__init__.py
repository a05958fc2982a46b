"""Relay error hierarchy."""

from __future__ import annotations

from payment_relay.errors.definitions import (
    ConfigurationError,
    ConnectionNotFoundError,
    ConsumerError,
    EventNotFoundError,
    InvalidRequestError,
    MalformedPayloadError,
    ProviderError,
    SignatureMismatchError,
    SignatureMissingError,
    TimestampOutOfToleranceError,
    TransactionNotFoundError,
    TransportError,
    VerificationError,
    WebhookNotConfiguredError,
)
from payment_relay.errors.relay_errors import RelayError

__all__ = [
    "ConfigurationError",
    "ConnectionNotFoundError",
    "ConsumerError",
    "EventNotFoundError",
    "InvalidRequestError",
    "MalformedPayloadError",
    "ProviderError",
    "RelayError",
    "SignatureMismatchError",
    "SignatureMissingError",
    "TimestampOutOfToleranceError",
    "TransactionNotFoundError",
    "TransportError",
    "VerificationError",
    "WebhookNotConfiguredError",
]
