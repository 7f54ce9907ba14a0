"""Cash ledger adapters package."""

from monetary_bank.services.cash.interface import (
    CashAccountNotFoundError,
    CashLedgerError,
    CashLedgerInterface,
    InsufficientCashError,
)
from monetary_bank.services.cash.memory import InMemoryCashLedger
from monetary_bank.services.cash.google_sheets import (
    CashSheetLayout,
    GoogleSheetsCashLedger,
)

__all__ = [
    "CashAccountNotFoundError",
    "CashLedgerError",
    "CashLedgerInterface",
    "CashSheetLayout",
    "GoogleSheetsCashLedger",
    "InMemoryCashLedger",
    "InsufficientCashError",
]
