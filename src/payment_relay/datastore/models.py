"""Transaction record model — one row per payment intent."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, BigInteger, DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

if TYPE_CHECKING:
    from payment_relay.payments.models import PaymentIntent


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(tz=UTC)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""

    type_annotation_map = {  # noqa: RUF012
        dict[str, Any]: JSON,
    }


class TransactionRecord(Base):
    """A payment intent as last seen by the relay.

    Core columns are always written. Extended columns (customer, payment
    method, card, amounts) are filled only when extended capture is enabled.
    """

    __tablename__ = "stripe_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, comment="Local transaction id")
    provider_payment_id: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, index=True, comment="Stripe payment intent id"
    )
    status: Mapped[str] = mapped_column(
        String(64), nullable=False, default="", comment="Payment intent or refund status"
    )
    amount: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0, comment="Amount in minor currency units"
    )
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="")
    client_secret: Mapped[str | None] = mapped_column(String(255), nullable=True)
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    # -- Extended data --
    customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_method_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_method_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    card_last4: Mapped[str | None] = mapped_column(String(4), nullable=True)
    card_brand: Mapped[str | None] = mapped_column(String(32), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    receipt_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    captured_amount: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    refunded_amount: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    application_fee_amount: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    @classmethod
    def new(
        cls,
        provider_payment_id: str,
        *,
        status: str,
        amount: int,
        currency: str,
        client_secret: str | None = None,
        metadata: dict[str, Any] | None = None,
        created_at: datetime | None = None,
    ) -> TransactionRecord:
        """Build a record with every column populated (usable without a session)."""
        now = utcnow()
        return cls(
            id=str(uuid.uuid4()),
            provider_payment_id=provider_payment_id,
            status=status,
            amount=amount,
            currency=currency,
            client_secret=client_secret,
            metadata_=dict(metadata or {}),
            created_at=created_at or now,
            updated_at=now,
        )

    def set_status(self, status: str) -> None:
        """Change the status and bump ``updated_at``."""
        self.status = status
        self.updated_at = utcnow()

    def apply_extended(self, intent: PaymentIntent) -> None:
        """Copy extended payment intent details onto the record."""
        self.customer_id = intent.customer
        self.description = intent.description
        self.receipt_email = intent.receipt_email
        self.captured_amount = intent.amount_capturable
        self.application_fee_amount = intent.application_fee_amount
        if intent.amount_capturable:
            self.refunded_amount = intent.amount_received - intent.amount_capturable
        if intent.payment_method_id:
            self.payment_method_id = intent.payment_method_id
            self.payment_method_type = intent.payment_method_type
            if intent.payment_method_type == "card":
                self.card_last4 = intent.card_last4
                self.card_brand = intent.card_brand

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict (client secret omitted)."""
        return {
            "id": self.id,
            "paymentIntentId": self.provider_payment_id,
            "status": self.status,
            "amount": self.amount,
            "currency": self.currency,
            "metadata": dict(self.metadata_ or {}),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"<TransactionRecord id={self.id} "
            f"payment={self.provider_payment_id} status={self.status}>"
        )
