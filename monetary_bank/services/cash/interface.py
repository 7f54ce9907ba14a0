"""
Cash Ledger Interface

The cash balance is owned by another subsystem. The bank only consumes
it through these three calls; any compatibility shimming for the owner's
table layout stays inside the adapter implementations.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional


class CashLedgerInterface(ABC):
    """
    Abstract interface for the external cash ledger.

    Implementations provide their own consistency guarantee for a
    single balance mutation. There is no transaction spanning cash and
    the deposit store.
    """

    @abstractmethod
    async def get_cash_balance(self, user_id: int, currency: str) -> Optional[Decimal]:
        """
        Read a user's cash balance.

        Returns:
            The balance, or None if the user has no cash account

        Raises:
            CashLedgerError: If the ledger could not be read
        """
        pass

    @abstractmethod
    async def adjust_cash(self, user_id: int, currency: str, delta: Decimal) -> Decimal:
        """
        Add `delta` to a user's cash (negative = debit).

        Returns:
            The balance after the change

        Raises:
            InsufficientCashError: If the change would make the balance negative
            CashLedgerError: If the account is missing or the write fails
        """
        pass

    @abstractmethod
    async def ensure_cash_account(self, user_id: int, currency: str) -> bool:
        """
        Create a minimal zero-balance account if none exists.

        Returns:
            True if an account exists afterwards
        """
        pass


class CashLedgerError(Exception):
    """Base exception for cash ledger operations."""
    pass


class CashAccountNotFoundError(CashLedgerError):
    """The user has no cash account for the currency."""
    pass


class InsufficientCashError(CashLedgerError):
    """The requested debit exceeds the cash balance."""

    def __init__(self, balance: Decimal, delta: Decimal):
        self.balance = balance
        self.delta = delta
        super().__init__(f"Cash balance {balance} cannot cover {-delta}")
