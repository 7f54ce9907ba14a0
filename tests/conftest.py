"""
Shared fixtures for the bank ledger tests.

Everything runs against the in-memory backends with a fixed clock, so
settlement dates are deterministic. No Google API calls are made.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from monetary_bank.audit import AuditLogger
from monetary_bank.config import BankSettings
from monetary_bank.ledger import ScopeLocks
from monetary_bank.ledger.operations import LedgerOperations
from monetary_bank.models.deposit import DepositKind, DepositRecord, SettlementCycle
from monetary_bank.services.cash import InMemoryCashLedger
from monetary_bank.services.storage import InMemoryAuditStorage, InMemoryDepositStore
from monetary_bank.services.storage.google_sheets import AUDIT_COLUMNS, DEPOSIT_COLUMNS
from monetary_bank.settlement import InterestSettlementEngine, RecordCompactor

NOW = datetime(2026, 3, 10, 15, 30)
TODAY = datetime(2026, 3, 10)
USER_ID = 42
CURRENCY = "coin"


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, moment: datetime):
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment

    def advance(self, **kwargs) -> None:
        self.moment += timedelta(**kwargs)


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the Sheets adapters."""

    def __init__(self, rows: list[list[str]]):
        self.rows = [list(r) for r in rows]

    def get_all_values(self) -> list[list[str]]:
        return [list(r) for r in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append([str(v) for v in values])

    def update(self, range_name, values, value_input_option=None):
        index = int(range_name[1:]) - 1
        self.rows[index] = [str(v) for v in values[0]]

    def update_cell(self, row, col, value):
        target = self.rows[row - 1]
        while len(target) < col:
            target.append("")
        target[col - 1] = str(value)

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:
    """Stands in for GoogleSheetsClient, serving FakeWorksheets by title."""

    def __init__(self, worksheets: dict[str, FakeWorksheet]):
        self.worksheets = worksheets
        self.settings = SimpleNamespace(
            deposits_sheet_name="BankDeposits",
            cash_sheet_name="Monetary",
            audit_sheet_name="AuditLog",
        )

    def get_worksheet(self, title, columns=None, rows=1000):
        if title not in self.worksheets:
            self.worksheets[title] = FakeWorksheet([columns] if columns else [])
        return self.worksheets[title]

    def get_deposits_sheet(self):
        return self.get_worksheet(self.settings.deposits_sheet_name, DEPOSIT_COLUMNS)

    def get_audit_sheet(self):
        return self.get_worksheet(self.settings.audit_sheet_name, AUDIT_COLUMNS)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def settings():
    return BankSettings(_env_file=None, enable_interest=True)


@pytest.fixture
def store():
    return InMemoryDepositStore()


@pytest.fixture
def cash():
    return InMemoryCashLedger({(USER_ID, CURRENCY): Decimal(1000)})


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def locks():
    return ScopeLocks()


@pytest.fixture
def operations(store, cash, settings, audit_logger, locks, clock):
    return LedgerOperations(
        store,
        cash,
        settings,
        audit_logger=audit_logger,
        locks=locks,
        clock=clock,
    )


@pytest.fixture
def compactor(store, locks, audit_logger):
    return RecordCompactor(store, locks=locks, audit_logger=audit_logger)


@pytest.fixture
def engine(store, settings, compactor, locks, audit_logger, clock):
    return InterestSettlementEngine(
        store,
        settings,
        compactor=compactor,
        locks=locks,
        audit_logger=audit_logger,
        clock=clock,
    )


@pytest.fixture
def make_record():
    """Factory for deposit records owned by the default test user."""

    def _make(principal, kind=DepositKind.DEMAND, days_ahead=1, **overrides):
        values = {
            "user_id": USER_ID,
            "currency": CURRENCY,
            "principal": Decimal(principal),
            "kind": kind,
            "rate": Decimal("0.25") if kind == DepositKind.DEMAND else Decimal("5"),
            "cycle": SettlementCycle.DAY if kind == DepositKind.DEMAND else SettlementCycle.WEEK,
            "next_settlement_at": TODAY + timedelta(days=days_ahead),
            "created_at": NOW,
        }
        values.update(overrides)
        return DepositRecord(**values)

    return _make
