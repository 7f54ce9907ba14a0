"""
Ledger Package

Exceptions and scope locks shared by the operations, settlement and
compaction code. LedgerOperations lives in monetary_bank.ledger.operations.
"""

from monetary_bank.ledger.compensation import Compensation
from monetary_bank.ledger.errors import (
    AccountUnavailableError,
    InsufficientDemandFundsError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidStateError,
    LedgerError,
    PersistenceError,
    RecordNotFoundError,
    SettlementError,
)
from monetary_bank.ledger.locks import ScopeLocks

__all__ = [
    "AccountUnavailableError",
    "Compensation",
    "InsufficientDemandFundsError",
    "InsufficientFundsError",
    "InvalidAmountError",
    "InvalidStateError",
    "LedgerError",
    "PersistenceError",
    "RecordNotFoundError",
    "ScopeLocks",
    "SettlementError",
]
