"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the persistent backend; the in-memory backend serves tests
and hosts that bring their own persistence.
"""

from monetary_bank.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DepositStoreInterface,
    DuplicateError,
    NotFoundError,
    StaleRecordError,
    StorageError,
)
from monetary_bank.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryDepositStore,
)
from monetary_bank.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDepositStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "DepositStoreInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StaleRecordError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryDepositStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsDepositStore",
]
