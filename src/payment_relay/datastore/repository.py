"""Transaction repositories — in-memory and SQL-backed."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sqlalchemy import select

from payment_relay.datastore.models import TransactionRecord
from payment_relay.errors import TransactionNotFoundError

if TYPE_CHECKING:
    from payment_relay.datastore.client import Datastore

logger = logging.getLogger(__name__)


@runtime_checkable
class TransactionRepository(Protocol):
    """Persistence for ``TransactionRecord`` rows."""

    async def create(self, record: TransactionRecord) -> TransactionRecord: ...
    async def update(self, record: TransactionRecord) -> TransactionRecord: ...
    async def find_by_id(self, record_id: str) -> TransactionRecord | None: ...
    async def find_by_provider_id(self, provider_payment_id: str) -> TransactionRecord | None: ...


class InMemoryTransactionRepository:
    """Process-local repository; contents are lost on restart."""

    def __init__(self) -> None:
        self._records: dict[str, TransactionRecord] = {}
        self._by_provider_id: dict[str, str] = {}
        self._lock = threading.Lock()

    async def create(self, record: TransactionRecord) -> TransactionRecord:
        with self._lock:
            self._records[record.id] = record
            self._by_provider_id[record.provider_payment_id] = record.id
        logger.debug("Stored transaction %s for %s", record.id, record.provider_payment_id)
        return record

    async def update(self, record: TransactionRecord) -> TransactionRecord:
        with self._lock:
            if record.id not in self._records:
                raise TransactionNotFoundError(record.id)
            self._records[record.id] = record
            self._by_provider_id[record.provider_payment_id] = record.id
        return record

    async def find_by_id(self, record_id: str) -> TransactionRecord | None:
        with self._lock:
            return self._records.get(record_id)

    async def find_by_provider_id(self, provider_payment_id: str) -> TransactionRecord | None:
        with self._lock:
            record_id = self._by_provider_id.get(provider_payment_id)
            return self._records.get(record_id) if record_id is not None else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class SQLTransactionRepository:
    """Repository backed by the async SQLAlchemy ``Datastore``."""

    def __init__(self, datastore: Datastore) -> None:
        self._datastore = datastore

    async def create(self, record: TransactionRecord) -> TransactionRecord:
        async with self._datastore.transaction() as session:
            session.add(record)
        logger.debug("Inserted transaction %s for %s", record.id, record.provider_payment_id)
        return record

    async def update(self, record: TransactionRecord) -> TransactionRecord:
        async with self._datastore.transaction() as session:
            if await session.get(TransactionRecord, record.id) is None:
                raise TransactionNotFoundError(record.id)
            merged = await session.merge(record)
        return merged

    async def find_by_id(self, record_id: str) -> TransactionRecord | None:
        async with self._datastore.session() as session:
            return await session.get(TransactionRecord, record_id)

    async def find_by_provider_id(self, provider_payment_id: str) -> TransactionRecord | None:
        stmt = select(TransactionRecord).where(
            TransactionRecord.provider_payment_id == provider_payment_id
        )
        async with self._datastore.session() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()
