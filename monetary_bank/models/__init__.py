"""
Data Models Package

This package contains all Pydantic models used by the bank ledger.
All data flowing through the ledger must conform to these schemas.
"""

from monetary_bank.models.deposit import (
    BankBalance,
    DepositKind,
    DepositRecord,
    FundingBreakdown,
    InterestPlan,
    SettlementCycle,
    calculate_interest,
    day_boundary,
    next_settlement_date,
)
from monetary_bank.models.results import (
    CompactionReport,
    LedgerErrorInfo,
    LedgerErrorKind,
    LedgerResult,
    SettlementReport,
)
from monetary_bank.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Deposit models
    "BankBalance",
    "DepositKind",
    "DepositRecord",
    "FundingBreakdown",
    "InterestPlan",
    "SettlementCycle",
    "calculate_interest",
    "day_boundary",
    "next_settlement_date",
    # Result models
    "CompactionReport",
    "LedgerErrorInfo",
    "LedgerErrorKind",
    "LedgerResult",
    "SettlementReport",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
