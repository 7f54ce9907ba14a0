"""
Tests for Monetary Bank

Test strategy:
1. Unit tests for individual components (models, settings, validators)
2. Integration tests for ledger flows against the in-memory backends
3. No real Google API calls in tests (fakes only)
"""

import pytest
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from monetary_bank.config import BankSettings, get_settings, validate_all_settings
from monetary_bank.ledger import InvalidAmountError, InvalidStateError
from monetary_bank.models.deposit import (
    BankBalance,
    DepositKind,
    DepositRecord,
    FundingBreakdown,
    InterestPlan,
    SettlementCycle,
    calculate_interest,
    day_boundary,
    next_settlement_date,
)
from monetary_bank.models.results import LedgerErrorKind, LedgerResult
from monetary_bank.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from monetary_bank.validation import resolve_amount, validate_amount, validate_plan


class TestDepositModels:
    """Tests for deposit-related Pydantic models."""

    def test_cycle_lengths(self):
        """Test that cycles map to 1, 7 and 30 days."""
        assert SettlementCycle.DAY.days == 1
        assert SettlementCycle.WEEK.days == 7
        assert SettlementCycle.MONTH.days == 30

    def test_new_deposit_gets_one_day_grace(self):
        """Test T+1: counting starts from tomorrow's midnight."""
        now = datetime(2026, 3, 10, 15, 30)
        assert next_settlement_date(SettlementCycle.DAY, now, is_new=True) == datetime(2026, 3, 12)
        assert next_settlement_date(SettlementCycle.WEEK, now, is_new=True) == datetime(2026, 3, 18)
        assert next_settlement_date(SettlementCycle.MONTH, now, is_new=True) == datetime(2026, 4, 10)

    def test_rollover_has_no_grace(self):
        """Test that rollovers count from today's midnight."""
        now = datetime(2026, 3, 10, 0, 0, 5)
        assert next_settlement_date(SettlementCycle.WEEK, now) == datetime(2026, 3, 17)

    def test_day_boundary(self):
        assert day_boundary(datetime(2026, 3, 10, 23, 59, 59)) == datetime(2026, 3, 10)

    def test_interest_is_floored(self):
        """Test that interest truncates to whole units."""
        assert calculate_interest(Decimal(1000), Decimal("0.25")) == Decimal(2)
        assert calculate_interest(Decimal(1000), Decimal(5)) == Decimal(50)
        assert calculate_interest(Decimal(99), Decimal("1")) == Decimal(0)

    def test_record_rejects_negative_principal(self):
        """Test that negative principal is rejected."""
        with pytest.raises(ValueError):
            DepositRecord(
                user_id=1,
                currency="coin",
                principal=Decimal("-1"),
                kind=DepositKind.DEMAND,
                rate=Decimal("0.25"),
                cycle=SettlementCycle.DAY,
                next_settlement_at=datetime(2026, 3, 12),
            )

    def test_record_requires_midnight_settlement(self):
        """Test that settlement dates must be day-aligned."""
        with pytest.raises(ValueError):
            DepositRecord(
                user_id=1,
                currency="coin",
                principal=Decimal(100),
                kind=DepositKind.DEMAND,
                rate=Decimal("0.25"),
                cycle=SettlementCycle.DAY,
                next_settlement_at=datetime(2026, 3, 12, 8, 0),
            )

    def test_demand_record_cannot_request_extension(self):
        """Test that the extension flag is fixed-only."""
        with pytest.raises(ValueError):
            DepositRecord(
                user_id=1,
                currency="coin",
                principal=Decimal(100),
                kind=DepositKind.DEMAND,
                rate=Decimal("0.25"),
                cycle=SettlementCycle.DAY,
                next_settlement_at=datetime(2026, 3, 12),
                extension_requested=True,
                pending_rate=Decimal("4.35"),
                pending_cycle=SettlementCycle.WEEK,
            )

    def test_extension_requires_pending_plan(self):
        """Test that an extension must say what it extends into."""
        with pytest.raises(ValueError):
            DepositRecord(
                user_id=1,
                currency="coin",
                principal=Decimal(100),
                kind=DepositKind.FIXED,
                rate=Decimal(5),
                cycle=SettlementCycle.WEEK,
                next_settlement_at=datetime(2026, 3, 12),
                extension_requested=True,
            )

    def test_record_is_due(self, make_record):
        record = make_record(100, days_ahead=0)
        assert record.is_due(datetime(2026, 3, 10, 0, 0))
        assert not make_record(100, days_ahead=1).is_due(datetime(2026, 3, 10, 23, 0))

    def test_plan_rejects_zero_rate(self):
        with pytest.raises(ValidationError):
            InterestPlan(name="Free", rate=Decimal(0), cycle=SettlementCycle.WEEK)

    def test_balance_total(self):
        balance = BankBalance(demand=Decimal(300), fixed=Decimal(700))
        assert balance.total == Decimal(1000)
        assert balance.to_dict()["total"] == Decimal(1000)

    def test_funding_total(self):
        funding = FundingBreakdown(from_cash=Decimal(50), from_demand=Decimal(70))
        assert funding.total == Decimal(120)

    def test_failure_result(self):
        result = LedgerResult.failure(LedgerErrorKind.INVALID_AMOUNT, "bad")
        assert not result.success
        assert result.error_kind == LedgerErrorKind.INVALID_AMOUNT
        assert result.new_balance is None

    def test_failure_message_is_truncated(self):
        """Test that long messages built from user input still produce a result."""
        result = LedgerResult.failure(LedgerErrorKind.INVALID_AMOUNT, "x" * 600)
        assert len(result.error.message) == 500


class TestSettings:
    """Tests for bank configuration."""

    def test_defaults(self):
        settings = BankSettings(_env_file=None)
        assert settings.default_currency == "coin"
        assert settings.debug is True
        assert settings.enable_interest is False
        assert settings.demand_interest.rate == Decimal("0.25")
        assert settings.demand_interest.cycle == SettlementCycle.DAY
        assert [p.name for p in settings.fixed_interest] == ["Weekly Fixed", "Monthly Fixed"]

    def test_plan_lookup(self):
        settings = BankSettings(_env_file=None)
        assert settings.find_plan("weekly fixed").rate == Decimal("4.35")
        assert settings.plan_by_number(2).cycle == SettlementCycle.MONTH
        assert settings.plan_by_number(3) is None
        assert settings.find_plan("Daily") is None

    def test_duplicate_plan_names_rejected(self):
        with pytest.raises(ValidationError):
            BankSettings(
                _env_file=None,
                fixed_interest=[
                    {"name": "Weekly", "rate": "4", "cycle": "week"},
                    {"name": "Weekly", "rate": "5", "cycle": "week"},
                ],
            )

    def test_demand_terms_when_disabled(self):
        """Test that new demand records earn nothing while demand interest is off."""
        settings = BankSettings(_env_file=None, demand_interest={"enabled": False})
        rate, cycle = settings.demand_terms()
        assert rate == Decimal(0)
        assert cycle == SettlementCycle.DAY

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("MONETARY_BANK_ENABLE_INTEREST", "true")
        monkeypatch.setenv("MONETARY_BANK_DEMAND_INTEREST__RATE", "0.5")
        settings = BankSettings(_env_file=None)
        assert settings.enable_interest is True
        assert settings.demand_interest.rate == Decimal("0.5")

    def test_validate_all_settings_reports_missing_sheets(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        get_settings.cache_clear()
        try:
            results = validate_all_settings()
        finally:
            get_settings.cache_clear()

        assert results["bank"] is True
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results


class TestValidation:
    """Tests for amount and plan validation."""

    def test_validate_amount_accepts_positive(self):
        assert validate_amount(100) == Decimal(100)
        assert validate_amount("12.5") == Decimal("12.5")

    @pytest.mark.parametrize("value", [0, -5, "abc", "NaN", "Infinity", None, True])
    def test_validate_amount_rejects(self, value):
        with pytest.raises(InvalidAmountError):
            validate_amount(value)

    def test_resolve_all_floors_available(self):
        assert resolve_amount("all", Decimal("10.7")) == Decimal(10)
        assert resolve_amount(" ALL ", Decimal(5)) == Decimal(5)

    def test_resolve_all_with_nothing_available(self):
        with pytest.raises(InvalidAmountError):
            resolve_amount("all", Decimal("0.9"))

    @pytest.mark.parametrize("text", ["", "0", "-3", "1.5", "ten", "²", "٣"])
    def test_resolve_rejects_non_positive_integers(self, text):
        with pytest.raises(InvalidAmountError):
            resolve_amount(text, Decimal(100))

    def test_validate_plan_rejects_constructed_zero_rate(self):
        plan = InterestPlan.model_construct(name="Broken", rate=Decimal(0), cycle=SettlementCycle.DAY)
        with pytest.raises(InvalidStateError):
            validate_plan(plan)


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.DEPOSIT_COMPLETED,
            description="Test deposit",
            user_id=42,
            currency="coin",
        )
        assert event.event_type == AuditEventType.DEPOSIT_COMPLETED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_sheets_row(self):
        """Test conversion to a Sheets row."""
        event = AuditEventBuilder.deposit_completed(
            user_id=42,
            currency="coin",
            record_id=uuid4(),
            amount=Decimal(100),
            new_cash=Decimal(900),
        )
        row = event.to_sheets_row()
        assert len(row) == 13
        assert row[2] == "deposit_completed"
        assert row[4] == "42"
        assert row[5] == "coin"

    def test_failed_compensation_is_critical(self):
        event = AuditEventBuilder.compensation(
            operation="deposit",
            user_id=42,
            currency="coin",
            steps=1,
            error_message="refund failed",
        )
        assert event.event_type == AuditEventType.COMPENSATION_FAILED
        assert event.severity == AuditSeverity.CRITICAL

    def test_applied_compensation_is_warning(self):
        event = AuditEventBuilder.compensation(
            operation="withdraw",
            user_id=42,
            currency="coin",
            steps=2,
        )
        assert event.event_type == AuditEventType.COMPENSATION_APPLIED
        assert event.severity == AuditSeverity.WARNING
        assert event.details["steps"] == 2
