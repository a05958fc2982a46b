"""Error types raised across the relay.

Verification errors are terminal for a single inbound webhook. Consumer
errors are isolated per consumer and only surface when the publisher is
configured with ``continue_on_error=False``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from payment_relay.errors.relay_errors import RelayError

if TYPE_CHECKING:
    from collections.abc import Sequence

# -- Webhook verification --------------------------------------------------


class VerificationError(RelayError):
    """Inbound webhook could not be verified."""

    def __init__(self, message: str, *, code: str = "verification-failed") -> None:
        super().__init__(message, status_code=400, code=code)


class WebhookNotConfiguredError(VerificationError):
    """No webhook signing secret is configured."""

    def __init__(self, message: str = "webhook signing secret is not configured") -> None:
        super().__init__(message, code="webhook-not-configured")


class SignatureMissingError(VerificationError):
    """The signature header is absent or empty."""

    def __init__(self, message: str = "missing webhook signature header") -> None:
        super().__init__(message, code="signature-missing")


class SignatureMismatchError(VerificationError):
    """No signature in the header matches the expected one."""

    def __init__(self, message: str = "webhook signature does not match") -> None:
        super().__init__(message, code="signature-mismatch")


class TimestampOutOfToleranceError(VerificationError):
    """The signed timestamp is outside the accepted window."""

    def __init__(self, message: str = "webhook timestamp outside tolerance") -> None:
        super().__init__(message, code="timestamp-out-of-tolerance")


class MalformedPayloadError(VerificationError):
    """The signed body is not a well-formed event."""

    def __init__(self, message: str = "webhook payload is malformed") -> None:
        super().__init__(message, code="malformed-payload")


# -- Dispatch --------------------------------------------------------------


class ConsumerError(RelayError):
    """One or more consumers failed while an event was being published.

    Attributes:
        errors: Every exception captured during the publish call.
    """

    def __init__(self, message: str, errors: Sequence[BaseException] = ()) -> None:
        super().__init__(message, status_code=500, code="consumer-error")
        self.errors = list(errors)


class TransportError(RelayError):
    """A WebSocket send or receive failed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=500, code="transport-error")


class ConfigurationError(RelayError):
    """Required configuration is missing or invalid."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=500, code="configuration-error")


# -- Provider --------------------------------------------------------------


class ProviderError(RelayError):
    """Error from the payment provider API.

    Attributes:
        error_type: Provider error type (e.g. ``card_error``), if reported.
        error_code: Provider error code (e.g. ``resource_missing``), if reported.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 502,
        error_type: str = "",
        error_code: str = "",
    ) -> None:
        super().__init__(message, status_code=status_code, code="provider-error")
        self.error_type = error_type
        self.error_code = error_code


class InvalidRequestError(RelayError):
    """The request cannot be processed as given."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=400, code="invalid-request")


# -- Not found -------------------------------------------------------------


class EventNotFoundError(RelayError):
    """Event id is not present in the event cache."""

    def __init__(self, event_id: str) -> None:
        super().__init__(f"event not found: {event_id}", status_code=404, code="event-not-found")
        self.event_id = event_id


class ConnectionNotFoundError(RelayError):
    """Connection id is not registered."""

    def __init__(self, connection_id: str) -> None:
        super().__init__(
            f"connection not found: {connection_id}",
            status_code=404,
            code="connection-not-found",
        )
        self.connection_id = connection_id


class TransactionNotFoundError(RelayError):
    """No stored transaction for the given id."""

    def __init__(self, transaction_id: str) -> None:
        super().__init__(
            f"transaction not found: {transaction_id}",
            status_code=404,
            code="transaction-not-found",
        )
