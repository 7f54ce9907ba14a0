"""Input validation package."""

from monetary_bank.validation.validator import (
    ALL_KEYWORD,
    resolve_amount,
    validate_amount,
    validate_plan,
)

__all__ = ["ALL_KEYWORD", "resolve_amount", "validate_amount", "validate_plan"]
