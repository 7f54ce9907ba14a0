"""Services package."""

from monetary_bank.services.cash import (
    CashAccountNotFoundError,
    CashLedgerError,
    CashLedgerInterface,
    GoogleSheetsCashLedger,
    InMemoryCashLedger,
    InsufficientCashError,
)
from monetary_bank.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DepositStoreInterface,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDepositStore,
    InMemoryAuditStorage,
    InMemoryDepositStore,
    NotFoundError,
    StaleRecordError,
    StorageError,
)

__all__ = [
    # Cash ledger
    "CashAccountNotFoundError",
    "CashLedgerError",
    "CashLedgerInterface",
    "GoogleSheetsCashLedger",
    "InMemoryCashLedger",
    "InsufficientCashError",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DepositStoreInterface",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsDepositStore",
    "InMemoryAuditStorage",
    "InMemoryDepositStore",
    "NotFoundError",
    "StaleRecordError",
    "StorageError",
]
