"""
In-Memory Storage Implementation

Used by the test suite and by hosts that embed the ledger without a
persistent backend. Records are copied on the way in and out, so callers
never hold a reference into the store.
"""

import asyncio
from typing import Optional
from uuid import UUID

from monetary_bank.models.audit import AuditEvent
from monetary_bank.models.deposit import DepositKind, DepositRecord
from monetary_bank.services.storage.interface import (
    AuditStorageInterface,
    DepositStoreInterface,
    DuplicateError,
    NotFoundError,
    StaleRecordError,
    StorageError,
    settlement_order_key,
)


class InMemoryDepositStore(DepositStoreInterface):
    """Dictionary-backed deposit store."""

    def __init__(self):
        self._records: dict[UUID, DepositRecord] = {}
        self._lock = asyncio.Lock()

    async def create_record(self, record: DepositRecord) -> DepositRecord:
        if record.principal <= 0:
            raise StorageError(f"Refusing to store record {record.id} with zero principal")
        async with self._lock:
            if record.id in self._records:
                raise DuplicateError(f"Record already exists: {record.id}")
            self._records[record.id] = record.model_copy(deep=True)
        return record.model_copy(deep=True)

    async def get_record(self, record_id: UUID) -> Optional[DepositRecord]:
        stored = self._records.get(record_id)
        return stored.model_copy(deep=True) if stored else None

    async def update_record(self, record: DepositRecord) -> DepositRecord:
        if record.principal <= 0:
            raise StorageError(f"Refusing to store record {record.id} with zero principal")
        async with self._lock:
            stored = self._records.get(record.id)
            if stored is None:
                raise NotFoundError(f"Record not found: {record.id}")
            if stored.version != record.version:
                raise StaleRecordError(record.id, record.version, stored.version)
            updated = record.model_copy(update={"version": record.version + 1}, deep=True)
            self._records[record.id] = updated
        return updated.model_copy(deep=True)

    async def delete_record(
        self,
        record_id: UUID,
        expected_version: Optional[int] = None,
    ) -> bool:
        async with self._lock:
            stored = self._records.get(record_id)
            if stored is None:
                return False
            if expected_version is not None and stored.version != expected_version:
                raise StaleRecordError(record_id, expected_version, stored.version)
            del self._records[record_id]
        return True

    async def list_records(
        self,
        user_id: Optional[int] = None,
        currency: Optional[str] = None,
        kind: Optional[DepositKind] = None,
    ) -> list[DepositRecord]:
        records = []
        for record in self._records.values():
            if user_id is not None and record.user_id != user_id:
                continue
            if currency is not None and record.currency != currency:
                continue
            if kind is not None and record.kind != kind:
                continue
            records.append(record.model_copy(deep=True))

        records.sort(key=settlement_order_key)
        return records


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed append-only audit log."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_user(
        self,
        user_id: int,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.user_id == user_id]
        events.sort(key=lambda e: e.timestamp)
        return events[:limit]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
