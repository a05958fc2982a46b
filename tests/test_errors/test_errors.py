"""Tests for the relay error hierarchy."""

from __future__ import annotations

import pytest

from payment_relay.errors import (
    ConfigurationError,
    ConnectionNotFoundError,
    ConsumerError,
    EventNotFoundError,
    InvalidRequestError,
    MalformedPayloadError,
    ProviderError,
    RelayError,
    SignatureMismatchError,
    SignatureMissingError,
    TimestampOutOfToleranceError,
    TransactionNotFoundError,
    TransportError,
    VerificationError,
    WebhookNotConfiguredError,
)

# ---------------------------------------------------------------------------
# RelayError base class
# ---------------------------------------------------------------------------


class TestRelayError:
    def test_default_attributes(self) -> None:
        err = RelayError("something broke")
        assert str(err) == "something broke"
        assert err.message == "something broke"
        assert err.status_code == 500
        assert err.code == "relay-error"

    def test_custom_attributes(self) -> None:
        err = RelayError("bad request", status_code=400, code="bad-req")
        assert err.status_code == 400
        assert err.code == "bad-req"

    def test_is_exception(self) -> None:
        with pytest.raises(RelayError, match="boom"):
            raise RelayError("boom")


# ---------------------------------------------------------------------------
# Verification errors
# ---------------------------------------------------------------------------


class TestVerificationErrors:
    @pytest.mark.parametrize(
        ("cls", "code"),
        [
            (WebhookNotConfiguredError, "webhook-not-configured"),
            (SignatureMissingError, "signature-missing"),
            (SignatureMismatchError, "signature-mismatch"),
            (TimestampOutOfToleranceError, "timestamp-out-of-tolerance"),
            (MalformedPayloadError, "malformed-payload"),
        ],
    )
    def test_codes_and_status(self, cls: type[VerificationError], code: str) -> None:
        err = cls()
        assert isinstance(err, VerificationError)
        assert err.code == code
        assert err.status_code == 400

    def test_custom_message(self) -> None:
        err = SignatureMismatchError("no v1 signature in signature header")
        assert err.message == "no v1 signature in signature header"
        assert err.code == "signature-mismatch"


# ---------------------------------------------------------------------------
# Other errors
# ---------------------------------------------------------------------------


class TestConsumerError:
    def test_carries_errors(self) -> None:
        causes = [ValueError("a"), TimeoutError()]
        err = ConsumerError("2 consumer(s) failed", causes)
        assert err.errors == causes
        assert err.status_code == 500
        assert err.code == "consumer-error"


class TestProviderError:
    def test_defaults(self) -> None:
        err = ProviderError("upstream down")
        assert err.status_code == 502
        assert err.code == "provider-error"
        assert err.error_type == ""
        assert err.error_code == ""

    def test_provider_details(self) -> None:
        err = ProviderError(
            "card declined", status_code=402, error_type="card_error", error_code="card_declined"
        )
        assert err.status_code == 402
        assert err.error_type == "card_error"
        assert err.error_code == "card_declined"


class TestNotFoundErrors:
    def test_event_not_found(self) -> None:
        err = EventNotFoundError("evt_1")
        assert err.status_code == 404
        assert err.event_id == "evt_1"
        assert "evt_1" in err.message

    def test_connection_not_found(self) -> None:
        err = ConnectionNotFoundError("c-1")
        assert err.status_code == 404
        assert err.connection_id == "c-1"

    def test_transaction_not_found(self) -> None:
        err = TransactionNotFoundError("t-1")
        assert err.status_code == 404
        assert err.code == "transaction-not-found"


class TestMiscErrors:
    def test_invalid_request(self) -> None:
        assert InvalidRequestError("nope").status_code == 400

    def test_transport(self) -> None:
        assert TransportError("closed").code == "transport-error"

    def test_configuration(self) -> None:
        err = ConfigurationError("missing dsn")
        assert err.status_code == 500
        assert err.code == "configuration-error"
