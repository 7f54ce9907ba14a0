"""
Ledger Operations

This module moves value between a user's cash and their deposits:
1. Deposit (cash → new demand record)
2. Withdraw (demand records → cash)
3. Open fixed term (cash first, then demand → new fixed record)
4. Request / cancel an extension on a fixed record

DESIGN DECISION: There is no transaction spanning the cash ledger and
the deposit store. Every mutation registers its undo step; if a later
step fails (or the task is cancelled) the undo steps run newest first,
so cash never moves without the matching record change.

Each operation holds the (user, currency) scope lock from its first read
to its last write. Public methods never raise; they return LedgerResult.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from functools import partial
from typing import AsyncIterator, Callable, Optional
from uuid import UUID

import structlog

from monetary_bank.audit import AuditLogger
from monetary_bank.config.settings import BankSettings
from monetary_bank.ledger.compensation import Compensation
from monetary_bank.ledger.errors import (
    AccountUnavailableError,
    InsufficientDemandFundsError,
    InsufficientFundsError,
    InvalidStateError,
    LedgerError,
    PersistenceError,
    RecordNotFoundError,
)
from monetary_bank.ledger.locks import ScopeLocks
from monetary_bank.models.deposit import (
    BankBalance,
    DepositKind,
    DepositRecord,
    FundingBreakdown,
    InterestPlan,
    next_settlement_date,
)
from monetary_bank.models.results import LedgerErrorKind, LedgerResult
from monetary_bank.queries import BalanceAggregator
from monetary_bank.services.cash import (
    CashLedgerError,
    CashLedgerInterface,
    InsufficientCashError,
)
from monetary_bank.services.storage import DepositStoreInterface, StorageError
from monetary_bank.validation.validator import validate_amount, validate_plan


Clock = Callable[[], datetime]


class LedgerOperations:
    """
    Value-moving operations on a user's bank deposits.

    GUARANTEES:
    - Amounts are validated before anything is read or written
    - Demand principal is always consumed oldest-maturing first
    - A failed operation leaves cash and records as they were
    """

    def __init__(
        self,
        store: DepositStoreInterface,
        cash: CashLedgerInterface,
        settings: BankSettings,
        audit_logger: Optional[AuditLogger] = None,
        locks: Optional[ScopeLocks] = None,
        clock: Optional[Clock] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self._store = store
        self._cash = cash
        self._settings = settings
        self._audit_logger = audit_logger or AuditLogger()
        self._locks = locks or ScopeLocks()
        self._clock = clock or datetime.now
        self._logger = logger or structlog.get_logger(__name__)
        self._balances = BalanceAggregator(store)

    # =========================================================================
    # PUBLIC OPERATIONS
    # =========================================================================

    async def deposit(self, user_id: int, currency: str, amount) -> LedgerResult:
        """Move cash into a new demand record."""
        return await self._run("deposit", user_id, currency, self._deposit, amount)

    async def withdraw(self, user_id: int, currency: str, amount) -> LedgerResult:
        """Move demand principal back to cash."""
        return await self._run("withdraw", user_id, currency, self._withdraw, amount)

    async def open_fixed_term(
        self,
        user_id: int,
        currency: str,
        amount,
        plan: InterestPlan,
    ) -> LedgerResult:
        """Lock funds in a fixed-term record, drawing on cash before demand."""
        return await self._run(
            "open_fixed_term", user_id, currency, self._open_fixed_term, amount, plan
        )

    async def request_extension(
        self,
        user_id: int,
        record_id: UUID,
        plan: InterestPlan,
    ) -> LedgerResult:
        """Ask for a fixed record to roll over into `plan` at maturity."""
        return await self._run(
            "request_extension", user_id, None, self._request_extension, record_id, plan
        )

    async def cancel_extension(self, user_id: int, record_id: UUID) -> LedgerResult:
        """Withdraw a pending extension request."""
        return await self._run(
            "cancel_extension", user_id, None, self._cancel_extension, record_id
        )

    # =========================================================================
    # OPERATION BODIES
    # =========================================================================

    async def _deposit(self, user_id: int, currency: str, amount) -> LedgerResult:
        amount = validate_amount(amount)

        async with self._locks.hold(user_id, currency):
            cash = await self._read_cash(user_id, currency)
            if cash < amount:
                raise InsufficientFundsError(
                    f"Cash balance {cash} is less than {amount}", available=cash
                )

            async with self._compensating("deposit", user_id, currency) as compensation:
                new_cash = await self._cash.adjust_cash(user_id, currency, -amount)
                compensation.add(
                    "refund cash",
                    partial(self._cash.adjust_cash, user_id, currency, amount),
                )
                record = await self._store.create_record(
                    self._new_demand_record(user_id, currency, amount)
                )

            new_balance = await self._balance_after(user_id, currency)

        self._logger.info(
            "deposit_completed",
            user_id=user_id,
            currency=currency,
            amount=str(amount),
            record_id=str(record.id),
        )
        await self._audit_logger.log_deposit(
            user_id=user_id,
            currency=currency,
            record_id=record.id,
            amount=amount,
            new_cash=new_cash,
        )

        return LedgerResult(
            success=True,
            new_cash=new_cash,
            new_balance=new_balance,
            record=record,
        )

    async def _withdraw(self, user_id: int, currency: str, amount) -> LedgerResult:
        amount = validate_amount(amount)

        async with self._locks.hold(user_id, currency):
            await self._read_cash(user_id, currency)

            records = await self._balances.list_demand_deposits(user_id, currency)
            available = sum((r.principal for r in records), Decimal(0))
            if available < amount:
                raise InsufficientDemandFundsError(
                    f"Demand deposits total {available}, cannot withdraw {amount}",
                    available=available,
                )

            async with self._compensating("withdraw", user_id, currency) as compensation:
                consumed = await self._consume_demand(records, amount, compensation)
                new_cash = await self._cash.adjust_cash(user_id, currency, amount)

            new_balance = await self._balance_after(user_id, currency)

        self._logger.info(
            "withdrawal_completed",
            user_id=user_id,
            currency=currency,
            amount=str(amount),
            records_touched=len(consumed),
        )
        await self._audit_logger.log_withdrawal(
            user_id=user_id,
            currency=currency,
            amount=amount,
            consumed=consumed,
            new_cash=new_cash,
        )

        return LedgerResult(success=True, new_cash=new_cash, new_balance=new_balance)

    async def _open_fixed_term(
        self,
        user_id: int,
        currency: str,
        amount,
        plan: InterestPlan,
    ) -> LedgerResult:
        self._require_interest()
        amount = validate_amount(amount)
        plan = validate_plan(plan)

        async with self._locks.hold(user_id, currency):
            cash = await self._read_cash(user_id, currency)
            records = await self._balances.list_demand_deposits(user_id, currency)
            demand_total = sum((r.principal for r in records), Decimal(0))

            if cash + demand_total < amount:
                raise InsufficientFundsError(
                    f"Cash {cash} plus demand {demand_total} cannot cover {amount}",
                    available=cash + demand_total,
                )

            funding = FundingBreakdown(
                from_cash=min(cash, amount),
                from_demand=amount - min(cash, amount),
            )
            new_cash = cash

            async with self._compensating("open_fixed_term", user_id, currency) as compensation:
                if funding.from_cash > 0:
                    new_cash = await self._cash.adjust_cash(user_id, currency, -funding.from_cash)
                    compensation.add(
                        "refund cash",
                        partial(self._cash.adjust_cash, user_id, currency, funding.from_cash),
                    )
                if funding.from_demand > 0:
                    await self._consume_demand(records, funding.from_demand, compensation)

                record = await self._store.create_record(DepositRecord(
                    user_id=user_id,
                    currency=currency,
                    principal=amount,
                    kind=DepositKind.FIXED,
                    rate=plan.rate,
                    cycle=plan.cycle,
                    next_settlement_at=next_settlement_date(plan.cycle, self._clock(), is_new=True),
                    created_at=self._clock(),
                ))

            new_balance = await self._balance_after(user_id, currency)

        self._logger.info(
            "fixed_term_opened",
            user_id=user_id,
            currency=currency,
            plan=plan.name,
            from_cash=str(funding.from_cash),
            from_demand=str(funding.from_demand),
        )
        await self._audit_logger.log_fixed_term_opened(
            user_id=user_id,
            currency=currency,
            record_id=record.id,
            plan_name=plan.name,
            from_cash=funding.from_cash,
            from_demand=funding.from_demand,
        )

        return LedgerResult(
            success=True,
            new_cash=new_cash,
            new_balance=new_balance,
            funding=funding,
            record=record,
        )

    async def _request_extension(
        self,
        user_id: int,
        _currency: Optional[str],
        record_id: UUID,
        plan: InterestPlan,
    ) -> LedgerResult:
        self._require_interest()
        plan = validate_plan(plan)
        located = await self._owned_record(user_id, record_id)

        async with self._locks.hold(user_id, located.currency):
            record = await self._owned_record(user_id, record_id)
            if record.is_demand:
                raise InvalidStateError("Only fixed-term deposits can be extended")
            if record.extension_requested:
                raise InvalidStateError("An extension is already pending for this deposit")

            updated = await self._store.update_record(record.model_copy(update={
                "extension_requested": True,
                "pending_rate": plan.rate,
                "pending_cycle": plan.cycle,
            }))

        await self._audit_logger.log_extension_changed(
            user_id=user_id,
            record_id=record_id,
            requested=True,
            plan_name=plan.name,
        )
        return LedgerResult(success=True, record=updated)

    async def _cancel_extension(
        self,
        user_id: int,
        _currency: Optional[str],
        record_id: UUID,
    ) -> LedgerResult:
        self._require_interest()
        located = await self._owned_record(user_id, record_id)

        async with self._locks.hold(user_id, located.currency):
            record = await self._owned_record(user_id, record_id)
            if record.is_demand or not record.extension_requested:
                raise InvalidStateError("No extension is pending for this deposit")

            updated = await self._store.update_record(record.model_copy(update={
                "extension_requested": False,
                "pending_rate": None,
                "pending_cycle": None,
            }))

        await self._audit_logger.log_extension_changed(
            user_id=user_id,
            record_id=record_id,
            requested=False,
        )
        return LedgerResult(success=True, record=updated)

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _run(self, operation: str, user_id: int, currency: Optional[str], action, *args) -> LedgerResult:
        """Run an operation body and translate its failure into a LedgerResult."""
        try:
            return await action(user_id, currency, *args)
        except LedgerError as e:
            kind, message = e.kind, str(e)
        except InsufficientCashError as e:
            kind, message = LedgerErrorKind.INSUFFICIENT_FUNDS, str(e)
        except CashLedgerError as e:
            kind, message = LedgerErrorKind.ACCOUNT_UNAVAILABLE, f"Cash account unavailable: {e}"
        except StorageError as e:
            kind, message = LedgerErrorKind.PERSISTENCE_FAILURE, f"Could not save deposit records: {e}"
        except Exception as e:
            self._logger.exception(
                "ledger_operation_crashed",
                operation=operation,
                user_id=user_id,
                currency=currency,
            )
            kind, message = LedgerErrorKind.PERSISTENCE_FAILURE, f"Unexpected error: {e}"

        self._logger.warning(
            "ledger_operation_failed",
            operation=operation,
            user_id=user_id,
            currency=currency,
            error_kind=kind.value,
            error=message,
        )
        await self._audit_logger.log_operation_failed(
            operation=operation,
            user_id=user_id,
            currency=currency,
            error_kind=kind.value,
            error_message=message,
        )
        return LedgerResult.failure(kind, message)

    @asynccontextmanager
    async def _compensating(
        self,
        operation: str,
        user_id: int,
        currency: str,
    ) -> AsyncIterator[Compensation]:
        """Roll back registered steps if the block raises or is cancelled."""
        compensation = Compensation()
        try:
            yield compensation
        except (Exception, asyncio.CancelledError) as e:
            steps = len(compensation)
            if steps:
                await self._rollback(operation, user_id, currency, compensation, steps, e)
            raise

    async def _rollback(
        self,
        operation: str,
        user_id: int,
        currency: str,
        compensation: Compensation,
        steps: int,
        cause: BaseException,
    ) -> None:
        try:
            await compensation.rollback()
        except Exception as e:
            self._logger.critical(
                "compensation_failed",
                operation=operation,
                user_id=user_id,
                currency=currency,
                cause=repr(cause),
                error=str(e),
            )
            await self._audit_logger.log_compensation(
                operation=operation,
                user_id=user_id,
                currency=currency,
                steps=steps,
                error_message=str(e),
            )
            return

        self._logger.warning(
            "compensation_applied",
            operation=operation,
            user_id=user_id,
            currency=currency,
            steps=steps,
            cause=repr(cause),
        )
        await self._audit_logger.log_compensation(
            operation=operation,
            user_id=user_id,
            currency=currency,
            steps=steps,
        )

    def _require_interest(self) -> None:
        if not self._settings.enable_interest:
            raise InvalidStateError("Fixed-term deposits are disabled")

    async def _read_cash(self, user_id: int, currency: str) -> Decimal:
        """Read cash, opening a zero-balance account if the user has none."""
        try:
            cash = await self._cash.get_cash_balance(user_id, currency)
            if cash is not None:
                return cash
            created = await self._cash.ensure_cash_account(user_id, currency)
        except CashLedgerError as e:
            raise AccountUnavailableError(f"Cash account unavailable: {e}")

        if not created:
            raise AccountUnavailableError(
                f"No cash account for user {user_id} in {currency} and none could be created"
            )
        return Decimal(0)

    async def _consume_demand(
        self,
        records: list[DepositRecord],
        amount: Decimal,
        compensation: Compensation,
    ) -> list[dict]:
        """
        Take `amount` out of demand records, oldest-maturing first.

        Records the caller passes must already be in settlement order.
        Whole records are deleted; the last one touched is decremented.
        """
        remaining = amount
        consumed = []

        for record in records:
            if remaining <= 0:
                break

            if record.principal <= remaining:
                deleted = await self._store.delete_record(record.id, expected_version=record.version)
                if not deleted:
                    raise PersistenceError(f"Deposit record {record.id} disappeared during withdrawal")
                compensation.add(
                    f"restore record {record.id}",
                    partial(self._store.create_record, record),
                )
                taken = record.principal
            else:
                updated = await self._store.update_record(
                    record.model_copy(update={"principal": record.principal - remaining})
                )
                compensation.add(
                    f"restore principal of {record.id}",
                    partial(self._restore_principal, updated, record.principal),
                )
                taken = remaining

            remaining -= taken
            consumed.append({"record_id": str(record.id), "amount": str(taken)})

        return consumed

    async def _restore_principal(self, record: DepositRecord, principal: Decimal) -> None:
        await self._store.update_record(record.model_copy(update={"principal": principal}))

    async def _owned_record(self, user_id: int, record_id: UUID) -> DepositRecord:
        record = await self._store.get_record(record_id)
        if record is None or record.user_id != user_id:
            raise RecordNotFoundError(record_id)
        return record

    async def _balance_after(self, user_id: int, currency: str) -> Optional[BankBalance]:
        """
        Read the balance after a committed operation.

        A failed read here does not undo the operation; the result just
        carries no balance.
        """
        try:
            return await self._balances.get_balance(user_id, currency)
        except StorageError as e:
            self._logger.warning(
                "balance_read_failed",
                user_id=user_id,
                currency=currency,
                error=str(e),
            )
            return None

    def _new_demand_record(self, user_id: int, currency: str, amount: Decimal) -> DepositRecord:
        rate, cycle = self._settings.demand_terms()
        now = self._clock()
        return DepositRecord(
            user_id=user_id,
            currency=currency,
            principal=amount,
            kind=DepositKind.DEMAND,
            rate=rate,
            cycle=cycle,
            next_settlement_at=next_settlement_date(cycle, now, is_new=True),
            created_at=now,
        )
