"""
Ledger Exceptions

Raised inside the ledger and translated to LedgerResult at the public
operation boundary. Each class carries its taxonomy kind.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from monetary_bank.models.results import LedgerErrorKind


class LedgerError(Exception):
    """Base exception for ledger operations."""

    kind: LedgerErrorKind = LedgerErrorKind.PERSISTENCE_FAILURE


class InvalidAmountError(LedgerError):
    """Zero, negative or non-numeric amount."""

    kind = LedgerErrorKind.INVALID_AMOUNT


class InsufficientFundsError(LedgerError):
    """Cash (plus demand, where allowed) cannot cover the amount."""

    kind = LedgerErrorKind.INSUFFICIENT_FUNDS

    def __init__(self, message: str, available: Optional[Decimal] = None):
        self.available = available
        super().__init__(message)


class InsufficientDemandFundsError(InsufficientFundsError):
    """Demand deposits cannot cover the withdrawal."""

    kind = LedgerErrorKind.INSUFFICIENT_DEMAND_FUNDS


class AccountUnavailableError(LedgerError):
    """The external cash account could not be read or created."""

    kind = LedgerErrorKind.ACCOUNT_UNAVAILABLE


class RecordNotFoundError(LedgerError):
    """No such record, or it belongs to someone else."""

    kind = LedgerErrorKind.RECORD_NOT_FOUND

    def __init__(self, record_id: UUID):
        self.record_id = record_id
        super().__init__(f"Deposit record not found: {record_id}")


class InvalidStateError(LedgerError):
    """Operation not valid for the record's kind or flags."""

    kind = LedgerErrorKind.INVALID_STATE


class PersistenceError(LedgerError):
    """A store read or write failed."""

    kind = LedgerErrorKind.PERSISTENCE_FAILURE


class SettlementError(LedgerError):
    """A single record could not be settled."""

    kind = LedgerErrorKind.SETTLEMENT_FAILURE
