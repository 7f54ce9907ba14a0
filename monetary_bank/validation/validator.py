"""
Amount and Plan Validation

DESIGN DECISION: Validation NEVER silently fixes input.
A bad amount is reported, not rounded or clamped.

Chat commands accept either a positive integer or the keyword `all`;
resolve_amount turns that text into a validated Decimal. The ledger
operations call validate_amount again on whatever they receive, so
programmatic callers get the same checks.
"""

from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Any

from monetary_bank.ledger.errors import InvalidAmountError, InvalidStateError
from monetary_bank.models.deposit import InterestPlan

ALL_KEYWORD = "all"


def validate_amount(value: Any) -> Decimal:
    """
    Coerce an amount to Decimal and require it to be positive.

    Raises:
        InvalidAmountError: For non-numeric, NaN, infinite, zero or negative input
    """
    if isinstance(value, bool):
        raise InvalidAmountError(f"Amount must be a number, got {value!r}")

    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmountError(f"Amount must be a number, got {value!r}")

    if not amount.is_finite():
        raise InvalidAmountError(f"Amount must be finite, got {value!r}")
    if amount <= 0:
        raise InvalidAmountError(f"Amount must be greater than zero, got {amount}")

    return amount


def resolve_amount(text: str, available: Decimal) -> Decimal:
    """
    Resolve a command argument to an amount.

    Args:
        text: A positive integer string, or `all`
        available: What `all` refers to (cash for deposits, demand for withdrawals)

    Raises:
        InvalidAmountError: If the text is not a positive integer, or `all`
            resolves to nothing
    """
    cleaned = str(text or "").strip().lower()

    if cleaned == ALL_KEYWORD:
        amount = Decimal(available).to_integral_value(rounding=ROUND_FLOOR)
        if amount <= 0:
            raise InvalidAmountError(f"Nothing available to move (available: {available})")
        return amount

    if not (cleaned.isascii() and cleaned.isdigit()):
        raise InvalidAmountError(f"Enter a positive whole number or '{ALL_KEYWORD}', got {text!r}")

    return validate_amount(int(cleaned))


def validate_plan(plan: InterestPlan) -> InterestPlan:
    """
    Check a fixed-term plan before it is applied to a record.

    InterestPlan already rejects non-positive rates at construction; this
    guards plans built with model_construct or mutated copies.
    """
    if plan.rate is None or plan.rate <= 0:
        raise InvalidStateError(f"Plan '{plan.name}' must have a positive rate")
    if plan.cycle is None:
        raise InvalidStateError(f"Plan '{plan.name}' has no settlement cycle")
    return plan
