"""Read-side queries package."""

from monetary_bank.queries.balance import BalanceAggregator

__all__ = ["BalanceAggregator"]
