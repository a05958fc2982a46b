"""Datastore — transaction persistence (in-memory or async SQLAlchemy)."""

from __future__ import annotations

from payment_relay.datastore.client import Datastore
from payment_relay.datastore.models import Base, TransactionRecord
from payment_relay.datastore.repository import (
    InMemoryTransactionRepository,
    SQLTransactionRepository,
    TransactionRepository,
)

__all__ = [
    "Base",
    "Datastore",
    "InMemoryTransactionRepository",
    "SQLTransactionRepository",
    "TransactionRecord",
    "TransactionRepository",
]
