"""
Tests for the BankService facade.

These go through create_app_components with in-memory storage, the same
way a host without Google Sheets would wire the bank.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from monetary_bank.models.deposit import DepositKind
from monetary_bank.models.results import LedgerErrorKind
from monetary_bank.orchestrator import create_app_components
from monetary_bank.services.cash import InMemoryCashLedger

from tests.conftest import CURRENCY, USER_ID


@pytest.fixture
def service(settings, clock):
    cash = InMemoryCashLedger({(USER_ID, CURRENCY): Decimal("1000.6")})
    bank, sheets_client = create_app_components(
        use_storage=False,
        settings=settings,
        cash=cash,
        clock=clock,
    )
    assert sheets_client is None
    return bank


class TestBankService:
    """Tests for the public bank surface."""

    @pytest.mark.asyncio
    async def test_deposit_all_floors_cash(self, service):
        """Test that `all` deposits the whole-unit part of the cash balance."""
        result = await service.deposit(USER_ID, None, "all")

        assert result.success
        assert result.new_cash == Decimal("0.6")
        assert (await service.get_balance(USER_ID)).demand == Decimal(1000)

    @pytest.mark.asyncio
    async def test_withdraw_all_empties_demand(self, service):
        await service.deposit(USER_ID, CURRENCY, "300")

        result = await service.withdraw(USER_ID, CURRENCY, "all")

        assert result.success
        assert result.new_balance.demand == Decimal(0)

    @pytest.mark.asyncio
    async def test_bad_amount_text(self, service):
        result = await service.deposit(USER_ID, CURRENCY, "lots")

        assert result.error_kind == LedgerErrorKind.INVALID_AMOUNT

    @pytest.mark.asyncio
    async def test_non_ascii_digits_are_rejected(self, service):
        """Test that Unicode digits come back as failures instead of raising."""
        deposit = await service.deposit(USER_ID, CURRENCY, "²")
        fixed = await service.open_fixed_term(USER_ID, CURRENCY, 10, "²")

        assert deposit.error_kind == LedgerErrorKind.INVALID_AMOUNT
        assert fixed.error_kind == LedgerErrorKind.INVALID_STATE

    @pytest.mark.asyncio
    async def test_long_input_still_returns_a_result(self, service):
        withdraw = await service.withdraw(USER_ID, CURRENCY, "x" * 600)
        fixed = await service.open_fixed_term(USER_ID, CURRENCY, 10, "p" * 600)

        assert withdraw.error_kind == LedgerErrorKind.INVALID_AMOUNT
        assert fixed.error_kind == LedgerErrorKind.INVALID_STATE
        assert len(withdraw.error.message) <= 500
        assert len(fixed.error.message) <= 500

    @pytest.mark.asyncio
    async def test_withdraw_all_with_nothing_deposited(self, service):
        result = await service.withdraw(USER_ID, CURRENCY, "all")

        assert result.error_kind == LedgerErrorKind.INVALID_AMOUNT

    @pytest.mark.asyncio
    async def test_open_fixed_term_by_plan_number_and_name(self, service):
        by_number = await service.open_fixed_term(USER_ID, CURRENCY, 100, "1")
        by_name = await service.open_fixed_term(USER_ID, CURRENCY, 100, "monthly fixed")

        assert by_number.record.rate == Decimal("4.35")
        assert by_name.record.rate == Decimal("50")
        fixed = await service.list_fixed_deposits(USER_ID)
        assert [r.kind for r in fixed] == [DepositKind.FIXED, DepositKind.FIXED]

    @pytest.mark.asyncio
    async def test_unknown_plan(self, service):
        result = await service.open_fixed_term(USER_ID, CURRENCY, 100, 9)

        assert result.error_kind == LedgerErrorKind.INVALID_STATE

    @pytest.mark.asyncio
    async def test_extension_through_service(self, service):
        opened = await service.open_fixed_term(USER_ID, CURRENCY, 100, 1)

        requested = await service.request_extension(USER_ID, opened.record.id, "Monthly Fixed")
        cancelled = await service.cancel_extension(USER_ID, opened.record.id)

        assert requested.record.pending_rate == Decimal("50")
        assert not cancelled.record.extension_requested

    def test_list_plans(self, service):
        assert [p.name for p in service.list_plans()] == ["Weekly Fixed", "Monthly Fixed"]

    @pytest.mark.asyncio
    async def test_settlement_after_a_week(self, service, clock):
        """Test a weekly deposit through to its first maturity."""
        opened = await service.open_fixed_term(USER_ID, CURRENCY, 1000, 1)
        assert opened.record.next_settlement_at == datetime(2026, 3, 18)

        clock.advance(days=8)
        report = await service.run_settlement()

        assert report.fixed_converted == 1
        balance = await service.get_balance(USER_ID)
        # floor(1000 * 4.35%) = 43
        assert balance.fixed == Decimal(0)
        assert balance.demand == Decimal(1043)

    @pytest.mark.asyncio
    async def test_scheduler_follows_interest_switch(self, service):
        service.start()
        assert service.scheduler.is_running
        await service.stop()
        assert not service.scheduler.is_running

    @pytest.mark.asyncio
    async def test_scheduler_off_without_interest(self, settings, clock):
        settings = settings.model_copy(update={"enable_interest": False})
        bank, _ = create_app_components(use_storage=False, settings=settings, clock=clock)

        bank.start()

        assert not bank.scheduler.is_running
