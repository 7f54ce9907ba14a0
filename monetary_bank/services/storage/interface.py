"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep ledger rules decoupled from storage implementation

The deposit store is pure data access. It enforces only what a storage
layer can: unique ids, no zero-principal rows, and version-checked
updates so two writers never both commit on top of the same stale read.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from monetary_bank.models.audit import AuditEvent
from monetary_bank.models.deposit import DepositKind, DepositRecord


class DepositStoreInterface(ABC):
    """
    Abstract interface for deposit record storage.

    Any storage implementation (Google Sheets, memory, SQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def create_record(self, record: DepositRecord) -> DepositRecord:
        """
        Persist a new deposit record.

        Args:
            record: The record to insert (its id must be unused)

        Returns:
            The stored record

        Raises:
            DuplicateError: If a record with the same id exists
            StorageError: If the record has zero principal or the write fails
        """
        pass

    @abstractmethod
    async def get_record(self, record_id: UUID) -> Optional[DepositRecord]:
        """
        Retrieve a record by its ID.

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    async def update_record(self, record: DepositRecord) -> DepositRecord:
        """
        Replace a stored record.

        The stored version must equal `record.version`; the returned copy
        carries the bumped version.

        Raises:
            NotFoundError: If the record doesn't exist
            StaleRecordError: If someone else updated it since it was read
            StorageError: If the record has zero principal or the write fails
        """
        pass

    @abstractmethod
    async def delete_record(
        self,
        record_id: UUID,
        expected_version: Optional[int] = None,
    ) -> bool:
        """
        Delete a record by ID.

        Args:
            record_id: The record's unique identifier
            expected_version: If given, only delete when the stored version matches

        Returns:
            True if deleted, False if no such record

        Raises:
            StaleRecordError: If the stored version differs from expected_version
        """
        pass

    @abstractmethod
    async def list_records(
        self,
        user_id: Optional[int] = None,
        currency: Optional[str] = None,
        kind: Optional[DepositKind] = None,
    ) -> list[DepositRecord]:
        """
        List records with optional filters.

        Returns:
            Matching records ordered by next_settlement_at ascending
            (ties broken by creation time)
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_user(
        self,
        user_id: int,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the events for one user.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


def settlement_order_key(record: DepositRecord) -> tuple:
    """Sort key shared by every backend: oldest-maturing first."""
    return (record.next_settlement_at, record.created_at)


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class StaleRecordError(StorageError):
    """The record changed since it was read."""

    def __init__(self, record_id: UUID, expected: Optional[int], actual: Optional[int]):
        self.record_id = record_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Record {record_id} is stale (expected version {expected}, found {actual})"
        )
