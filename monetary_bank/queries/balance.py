"""
Balance Aggregation

DESIGN DECISION: Balances are DERIVED, never stored.
The bank balance shown to a user is always the sum of the deposit
records at the moment of the read. There is no cached total that could
drift from the records underneath it.
"""

from decimal import Decimal

from monetary_bank.models.deposit import BankBalance, DepositKind, DepositRecord
from monetary_bank.services.storage import DepositStoreInterface


class BalanceAggregator:
    """
    Read-only views over a user's deposit records.

    GUARANTEES:
    - No side effects
    - Zero balances (not an error) when the user has no records
    - Record lists in settlement order, oldest-maturing first
    """

    def __init__(self, store: DepositStoreInterface):
        self._store = store

    async def get_balance(self, user_id: int, currency: str) -> BankBalance:
        records = await self._store.list_records(user_id=user_id, currency=currency)
        return self.summarize(records)

    async def list_fixed_deposits(self, user_id: int, currency: str) -> list[DepositRecord]:
        return await self._store.list_records(
            user_id=user_id,
            currency=currency,
            kind=DepositKind.FIXED,
        )

    async def list_demand_deposits(self, user_id: int, currency: str) -> list[DepositRecord]:
        return await self._store.list_records(
            user_id=user_id,
            currency=currency,
            kind=DepositKind.DEMAND,
        )

    @staticmethod
    def summarize(records: list[DepositRecord]) -> BankBalance:
        """Partition records by kind and sum the principal of each."""
        demand = Decimal(0)
        fixed = Decimal(0)
        for record in records:
            if record.is_demand:
                demand += record.principal
            else:
                fixed += record.principal
        return BankBalance(demand=demand, fixed=fixed)
