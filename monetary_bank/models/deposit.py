"""
Core Data Models for the Bank Ledger

These models define the strict schemas for every deposit tranche the
ledger holds. They are designed to:
1. Enforce the record invariants at construction time
2. Be serializable for storage and logging
3. Keep the demand/fixed distinction a closed tag, not a class hierarchy

DESIGN DECISION: Money is held as Decimal. Interest is truncated to whole
units at settlement, so fractional drift never accumulates.
"""

from datetime import datetime, timedelta
from decimal import ROUND_FLOOR, Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class DepositKind(str, Enum):
    """
    Deposit class of a record.

    Demand principal is liquid and withdrawable.
    Fixed principal is locked until maturity.
    """
    DEMAND = "demand"
    FIXED = "fixed"


class SettlementCycle(str, Enum):
    """
    Settlement interval.

    DESIGN DECISION: A month is approximated as 30 days. Changing this
    would move every existing maturity date.
    """
    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @property
    def days(self) -> int:
        return CYCLE_DAYS[self]


CYCLE_DAYS = {
    SettlementCycle.DAY: 1,
    SettlementCycle.WEEK: 7,
    SettlementCycle.MONTH: 30,
}


# =============================================================================
# DATE HELPERS
# =============================================================================

def day_boundary(moment: datetime) -> datetime:
    """Truncate a timestamp to process-local midnight."""
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def next_settlement_date(
    cycle: SettlementCycle,
    now: datetime,
    is_new: bool = False,
) -> datetime:
    """
    Compute the next settlement date for a cycle.

    New deposits get T+1 grace: counting starts from tomorrow's midnight.
    Rollovers and conversions count from today's midnight.
    """
    settlement = day_boundary(now)
    if is_new:
        settlement += timedelta(days=1)
    return settlement + timedelta(days=cycle.days)


def calculate_interest(principal: Decimal, rate: Decimal) -> Decimal:
    """Interest for one cycle, truncated to whole currency units."""
    return (principal * rate / Decimal(100)).to_integral_value(rounding=ROUND_FLOOR)


# =============================================================================
# PLANS
# =============================================================================

class InterestPlan(BaseModel):
    """A fixed-term plan offered to users."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Plan display name"
    )
    rate: Decimal = Field(
        ...,
        gt=0,
        description="Interest rate per cycle (percent)"
    )
    cycle: SettlementCycle = Field(
        ...,
        description="Settlement interval"
    )


# =============================================================================
# CORE DEPOSIT MODEL
# =============================================================================

class DepositRecord(BaseModel):
    """
    One contiguous deposit tranche.

    A user may hold many records of either kind for the same currency.
    Records with zero principal are deleted, never stored.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique record ID"
    )
    user_id: int = Field(
        ...,
        description="Owning user"
    )
    currency: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Owning currency"
    )

    principal: Decimal = Field(
        ...,
        ge=0,
        description="Principal in currency units"
    )
    kind: DepositKind
    rate: Decimal = Field(
        ...,
        ge=0,
        description="Interest rate for the current cycle (percent)"
    )
    cycle: SettlementCycle
    next_settlement_at: datetime = Field(
        ...,
        description="Midnight of the next accrual/maturity check"
    )

    # Fixed-term extension
    extension_requested: bool = False
    pending_rate: Optional[Decimal] = Field(default=None, ge=0)
    pending_cycle: Optional[SettlementCycle] = None

    # Optimistic concurrency, bumped by the store on every update
    version: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator('next_settlement_at')
    @classmethod
    def validate_midnight(cls, v: datetime) -> datetime:
        """Settlement dates have day granularity."""
        if v != day_boundary(v):
            raise ValueError("Settlement date must be aligned to midnight")
        return v

    @model_validator(mode='after')
    def validate_extension_fields(self) -> 'DepositRecord':
        """Validate the extension flag against the record kind."""
        has_pending = self.pending_rate is not None or self.pending_cycle is not None

        if self.kind == DepositKind.DEMAND:
            if self.extension_requested or has_pending:
                raise ValueError("Demand records cannot carry an extension plan")
        elif self.extension_requested:
            if self.pending_rate is None or self.pending_cycle is None:
                raise ValueError("Extension requires a pending rate and cycle")

        return self

    @property
    def is_demand(self) -> bool:
        return self.kind == DepositKind.DEMAND

    @property
    def settlement_day(self) -> datetime:
        return day_boundary(self.next_settlement_at)

    def is_due(self, today: datetime) -> bool:
        """Check whether the record matures on or before the given day."""
        return self.settlement_day <= day_boundary(today)


class BankBalance(BaseModel):
    """
    Aggregated bank balance for one user and currency.

    Derived from the deposit records, never persisted.
    """

    demand: Decimal = Field(default=Decimal(0), ge=0)
    fixed: Decimal = Field(default=Decimal(0), ge=0)

    @property
    def total(self) -> Decimal:
        return self.demand + self.fixed

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "demand": self.demand,
            "fixed": self.fixed,
        }


class FundingBreakdown(BaseModel):
    """Where the principal of a new fixed-term deposit came from."""

    from_cash: Decimal = Field(default=Decimal(0), ge=0)
    from_demand: Decimal = Field(default=Decimal(0), ge=0)

    @property
    def total(self) -> Decimal:
        return self.from_cash + self.from_demand
