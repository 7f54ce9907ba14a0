"""
Result Models for Ledger Operations

Every public ledger operation returns a LedgerResult instead of raising.
Callers (chat commands, other plugins) inspect `success` and render
either the new balances or the error message.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from monetary_bank.models.deposit import BankBalance, DepositRecord, FundingBreakdown

MAX_ERROR_MESSAGE_LENGTH = 500


class LedgerErrorKind(str, Enum):
    """Error taxonomy exposed to callers."""
    INVALID_AMOUNT = "invalid_amount"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INSUFFICIENT_DEMAND_FUNDS = "insufficient_demand_funds"
    ACCOUNT_UNAVAILABLE = "account_unavailable"
    RECORD_NOT_FOUND = "record_not_found"
    INVALID_STATE = "invalid_state"
    PERSISTENCE_FAILURE = "persistence_failure"
    SETTLEMENT_FAILURE = "settlement_failure"


class LedgerErrorInfo(BaseModel):
    """A short human-readable message plus the structured kind."""

    kind: LedgerErrorKind
    message: str = Field(..., max_length=MAX_ERROR_MESSAGE_LENGTH)


class LedgerResult(BaseModel):
    """
    Outcome of a ledger operation.

    Balances always reflect the final persisted state. On failure they
    are omitted rather than reporting values from a rolled-back attempt.
    """

    success: bool
    new_cash: Optional[Decimal] = None
    new_balance: Optional[BankBalance] = None
    funding: Optional[FundingBreakdown] = None
    record: Optional[DepositRecord] = None
    error: Optional[LedgerErrorInfo] = None

    @classmethod
    def failure(cls, kind: LedgerErrorKind, message: str) -> 'LedgerResult':
        message = str(message)[:MAX_ERROR_MESSAGE_LENGTH]
        return cls(success=False, error=LedgerErrorInfo(kind=kind, message=message))

    @property
    def error_kind(self) -> Optional[LedgerErrorKind]:
        return self.error.kind if self.error else None


class SettlementReport(BaseModel):
    """Summary of one settlement sweep."""

    run_at: datetime = Field(default_factory=datetime.now)
    settlement_day: datetime
    scanned: int = 0
    demand_compounded: int = 0
    fixed_extended: int = 0
    fixed_converted: int = 0
    skipped: int = 0
    failed: int = 0
    interest_paid: Decimal = Decimal(0)
    groups_merged: int = 0

    @property
    def processed(self) -> int:
        return self.demand_compounded + self.fixed_extended + self.fixed_converted


class CompactionReport(BaseModel):
    """Summary of one compaction pass."""

    groups_seen: int = 0
    groups_merged: int = 0
    records_removed: int = 0
    failed_groups: int = 0
