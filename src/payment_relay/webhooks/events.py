"""Verified webhook events.

A ``VerifiedEvent`` is either parsed from a signed Stripe webhook body or
synthesized locally after a payment operation. Either way it is immutable.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

PAYMENT_INTENT_PREFIX = "payment_intent."
REFUND_PREFIX = "charge.refund."
LOCAL_EVENT_PREFIX = "local_"


def _freeze(payload: dict[str, Any] | None) -> MappingProxyType[str, Any]:
    return MappingProxyType(dict(payload or {}))


@dataclass(frozen=True)
class VerifiedEvent:
    """A typed, timestamped fact about a payment or refund transition.

    Attributes:
        id: Provider event id (``evt_...``) or a ``local_`` id for
            synthesized events.
        type: Provider event type, e.g. ``payment_intent.succeeded``.
        occurred_at: When the provider created the event.
        payload: The event's data object (read-only view).
    """

    id: str
    type: str
    occurred_at: datetime
    payload: MappingProxyType[str, Any] = field(default_factory=lambda: _freeze(None))

    def __post_init__(self) -> None:
        if not isinstance(self.payload, MappingProxyType):
            object.__setattr__(self, "payload", _freeze(self.payload))

    @property
    def is_payment_intent(self) -> bool:
        """Whether the event describes a payment intent transition."""
        return (
            self.type.startswith(PAYMENT_INTENT_PREFIX)
            and self.payload.get("object", "payment_intent") == "payment_intent"
        )

    @property
    def is_refund(self) -> bool:
        """Whether the event describes a refund."""
        return self.type.startswith(REFUND_PREFIX)

    @property
    def is_local(self) -> bool:
        """Whether the event was synthesized in-process."""
        return self.id.startswith(LOCAL_EVENT_PREFIX)

    @property
    def subject_id(self) -> str | None:
        """Payment intent id the event is about, if any."""
        if self.is_payment_intent:
            return self.payload.get("id") or None
        if self.is_refund:
            return self.payload.get("payment_intent") or None
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "id": self.id,
            "type": self.type,
            "occurredAt": self.occurred_at.isoformat(),
            "payload": dict(self.payload),
        }

    @classmethod
    def synthesize(cls, event_type: str, payload: dict[str, Any]) -> VerifiedEvent:
        """Build an event for an operation performed locally through the API."""
        return cls(
            id=f"{LOCAL_EVENT_PREFIX}{uuid.uuid4().hex}",
            type=event_type,
            occurred_at=datetime.now(tz=UTC),
            payload=payload,
        )
