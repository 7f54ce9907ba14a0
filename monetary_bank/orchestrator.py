"""
Main Orchestrator for the Bank Ledger

This module ties together all the components and exposes the surface
a chat-bot host (or another plugin) calls:
1. Balance and deposit listings
2. Deposit / withdraw / fixed-term operations
3. The daily settlement run and its scheduler

DESIGN DECISION: The orchestrator is the only place that reads
configuration and chooses backends. Everything below it receives its
store, cash ledger, locks, clock and logger explicitly.
"""

from datetime import datetime
from typing import Callable, Optional, Union
from uuid import UUID

import structlog

from monetary_bank.audit import AuditLogger, configure_logging
from monetary_bank.config import BankSettings, get_settings
from monetary_bank.ledger import LedgerError, ScopeLocks
from monetary_bank.ledger.operations import LedgerOperations
from monetary_bank.models.deposit import BankBalance, DepositRecord, InterestPlan
from monetary_bank.models.results import LedgerErrorKind, LedgerResult, SettlementReport
from monetary_bank.queries import BalanceAggregator
from monetary_bank.services.cash import (
    CashLedgerError,
    CashLedgerInterface,
    GoogleSheetsCashLedger,
    InMemoryCashLedger,
)
from monetary_bank.services.storage import (
    DepositStoreInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDepositStore,
    InMemoryDepositStore,
    StorageError,
)
from monetary_bank.settlement import (
    InterestSettlementEngine,
    RecordCompactor,
    SettlementScheduler,
)
from monetary_bank.validation import resolve_amount

PlanChoice = Union[InterestPlan, str, int]
Amount = Union[int, str]


class BankService:
    """
    Facade over the ledger.

    Amounts may be given as numbers or as command text; text goes through
    resolve_amount, so `all` means everything available. Currency defaults
    to the configured default currency.
    """

    def __init__(
        self,
        store: DepositStoreInterface,
        cash: CashLedgerInterface,
        settings: BankSettings,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self._settings = settings
        self._cash = cash
        self._logger = logger or structlog.get_logger(__name__)
        audit_logger = audit_logger or AuditLogger()
        locks = ScopeLocks()

        self._balances = BalanceAggregator(store)
        self._operations = LedgerOperations(
            store,
            cash,
            settings,
            audit_logger=audit_logger,
            locks=locks,
            clock=clock,
        )
        self._engine = InterestSettlementEngine(
            store,
            settings,
            compactor=RecordCompactor(store, locks=locks, audit_logger=audit_logger),
            locks=locks,
            audit_logger=audit_logger,
            clock=clock,
        )
        self._scheduler = SettlementScheduler(self._engine, clock=clock)

    @property
    def settings(self) -> BankSettings:
        return self._settings

    @property
    def scheduler(self) -> SettlementScheduler:
        return self._scheduler

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        """Start daily settlement if interest is enabled. Needs a running event loop."""
        if self._settings.enable_interest:
            self._scheduler.start()

    async def stop(self) -> None:
        await self._scheduler.stop()

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_balance(self, user_id: int, currency: Optional[str] = None) -> BankBalance:
        return await self._balances.get_balance(user_id, self._currency(currency))

    async def list_fixed_deposits(
        self,
        user_id: int,
        currency: Optional[str] = None,
    ) -> list[DepositRecord]:
        return await self._balances.list_fixed_deposits(user_id, self._currency(currency))

    def list_plans(self) -> list[InterestPlan]:
        return list(self._settings.fixed_interest)

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def deposit(
        self,
        user_id: int,
        currency: Optional[str],
        amount: Amount,
    ) -> LedgerResult:
        currency = self._currency(currency)
        try:
            amount = await self._resolve(amount, self._available_cash, user_id, currency)
        except (LedgerError, CashLedgerError, StorageError) as e:
            return self._failure(e)
        return await self._operations.deposit(user_id, currency, amount)

    async def withdraw(
        self,
        user_id: int,
        currency: Optional[str],
        amount: Amount,
    ) -> LedgerResult:
        currency = self._currency(currency)
        try:
            amount = await self._resolve(amount, self._available_demand, user_id, currency)
        except (LedgerError, StorageError) as e:
            return self._failure(e)
        return await self._operations.withdraw(user_id, currency, amount)

    async def open_fixed_term(
        self,
        user_id: int,
        currency: Optional[str],
        amount: Amount,
        plan: PlanChoice,
    ) -> LedgerResult:
        resolved = self._resolve_plan(plan)
        if resolved is None:
            return LedgerResult.failure(LedgerErrorKind.INVALID_STATE, f"Unknown plan: {plan}")
        return await self._operations.open_fixed_term(
            user_id, self._currency(currency), amount, resolved
        )

    async def request_extension(
        self,
        user_id: int,
        record_id: UUID,
        plan: PlanChoice,
    ) -> LedgerResult:
        resolved = self._resolve_plan(plan)
        if resolved is None:
            return LedgerResult.failure(LedgerErrorKind.INVALID_STATE, f"Unknown plan: {plan}")
        return await self._operations.request_extension(user_id, record_id, resolved)

    async def cancel_extension(self, user_id: int, record_id: UUID) -> LedgerResult:
        return await self._operations.cancel_extension(user_id, record_id)

    async def run_settlement(self, today: Optional[datetime] = None) -> SettlementReport:
        """Run one settlement sweep now, outside the daily schedule."""
        return await self._engine.run(today)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _currency(self, currency: Optional[str]) -> str:
        return currency or self._settings.default_currency

    def _resolve_plan(self, plan: PlanChoice) -> Optional[InterestPlan]:
        """Accept a plan object, its 1-based menu number, or its name."""
        if isinstance(plan, InterestPlan):
            return plan
        if isinstance(plan, int):
            return self._settings.plan_by_number(plan)
        text = str(plan).strip()
        if text.isascii() and text.isdigit():
            return self._settings.plan_by_number(int(text))
        return self._settings.find_plan(text)

    async def _resolve(self, amount: Amount, available, user_id: int, currency: str):
        if not isinstance(amount, str):
            return amount
        return resolve_amount(amount, await available(user_id, currency))

    async def _available_cash(self, user_id: int, currency: str):
        cash = await self._cash.get_cash_balance(user_id, currency)
        return cash if cash is not None else 0

    async def _available_demand(self, user_id: int, currency: str):
        balance = await self._balances.get_balance(user_id, currency)
        return balance.demand

    def _failure(self, error: Exception) -> LedgerResult:
        if isinstance(error, LedgerError):
            kind = error.kind
        elif isinstance(error, StorageError):
            kind = LedgerErrorKind.PERSISTENCE_FAILURE
        else:
            kind = LedgerErrorKind.ACCOUNT_UNAVAILABLE
        self._logger.info("amount_rejected", error_kind=kind.value, error=str(error))
        return LedgerResult.failure(kind, str(error))


def create_app_components(
    use_storage: bool = True,
    settings: Optional[BankSettings] = None,
    cash: Optional[CashLedgerInterface] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> tuple[BankService, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use Google Sheets storage.
                    Set to False for in-memory storage (tests, demos).
        settings: Bank settings (loaded from the environment if omitted)
        cash: Cash ledger supplied by the host. Defaults to the Sheets
              cash table, or an empty in-memory ledger without storage.
        clock: Time source for settlement dates

    Returns:
        (bank_service, sheets_client)
    """
    settings = settings or get_settings().bank
    configure_logging(settings.debug)
    logger = structlog.get_logger(__name__)

    sheets_client = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            store = GoogleSheetsDepositStore(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
            cash = cash or GoogleSheetsCashLedger(sheets_client)
        except Exception as e:
            logger.error("storage_not_configured", error=str(e))
            raise
    else:
        store = InMemoryDepositStore()
        audit_logger = AuditLogger()
        cash = cash or InMemoryCashLedger()

    service = BankService(
        store,
        cash,
        settings,
        audit_logger=audit_logger,
        clock=clock,
    )
    return service, sheets_client
