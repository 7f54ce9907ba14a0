"""In-memory cash ledger for tests and embedded hosts."""

import asyncio
from decimal import Decimal
from typing import Optional

from monetary_bank.services.cash.interface import (
    CashAccountNotFoundError,
    CashLedgerInterface,
    InsufficientCashError,
)


class InMemoryCashLedger(CashLedgerInterface):
    """Dictionary of balances keyed by (user_id, currency)."""

    def __init__(self, balances: Optional[dict[tuple[int, str], Decimal]] = None):
        self._balances: dict[tuple[int, str], Decimal] = {
            key: Decimal(value) for key, value in (balances or {}).items()
        }
        self._lock = asyncio.Lock()

    def set_balance(self, user_id: int, currency: str, amount) -> None:
        self._balances[(user_id, currency)] = Decimal(amount)

    async def get_cash_balance(self, user_id: int, currency: str) -> Optional[Decimal]:
        return self._balances.get((user_id, currency))

    async def adjust_cash(self, user_id: int, currency: str, delta: Decimal) -> Decimal:
        async with self._lock:
            current = self._balances.get((user_id, currency))
            if current is None:
                raise CashAccountNotFoundError(
                    f"No cash account for user {user_id} in {currency}"
                )
            new_balance = current + delta
            if new_balance < 0:
                raise InsufficientCashError(current, delta)
            self._balances[(user_id, currency)] = new_balance
        return new_balance

    async def ensure_cash_account(self, user_id: int, currency: str) -> bool:
        self._balances.setdefault((user_id, currency), Decimal(0))
        return True
