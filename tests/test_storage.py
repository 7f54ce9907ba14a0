"""
Tests for the storage backends and the cash ledger adapters.

The Google Sheets adapters run against in-process fake worksheets.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from monetary_bank.audit import AuditLogger
from monetary_bank.models.audit import AuditEventBuilder
from monetary_bank.models.deposit import DepositKind
from monetary_bank.services.cash import (
    CashAccountNotFoundError,
    CashLedgerError,
    CashSheetLayout,
    GoogleSheetsCashLedger,
    InMemoryCashLedger,
    InsufficientCashError,
)
from monetary_bank.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsDepositStore,
    NotFoundError,
    StaleRecordError,
    StorageError,
)

from tests.conftest import CURRENCY, USER_ID, FakeSheetsClient, FakeWorksheet


class TestInMemoryDepositStore:
    """Tests for the dictionary-backed store."""

    @pytest.mark.asyncio
    async def test_update_bumps_version(self, store, make_record):
        record = await store.create_record(make_record(100))

        updated = await store.update_record(record.model_copy(update={"principal": Decimal(80)}))

        assert updated.version == record.version + 1
        assert (await store.get_record(record.id)).principal == Decimal(80)

    @pytest.mark.asyncio
    async def test_stale_update_rejected(self, store, make_record):
        """Test that two writers cannot both commit on the same read."""
        record = await store.create_record(make_record(100))
        await store.update_record(record.model_copy(update={"principal": Decimal(80)}))

        with pytest.raises(StaleRecordError):
            await store.update_record(record.model_copy(update={"principal": Decimal(60)}))

    @pytest.mark.asyncio
    async def test_version_checked_delete(self, store, make_record):
        record = await store.create_record(make_record(100))

        with pytest.raises(StaleRecordError):
            await store.delete_record(record.id, expected_version=5)
        assert await store.delete_record(record.id, expected_version=record.version)
        assert not await store.delete_record(record.id)

    @pytest.mark.asyncio
    async def test_zero_principal_never_stored(self, store, make_record):
        with pytest.raises(StorageError):
            await store.create_record(make_record(0))

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, store, make_record):
        record = await store.create_record(make_record(100))

        with pytest.raises(DuplicateError):
            await store.create_record(record)

    @pytest.mark.asyncio
    async def test_update_missing_record(self, store, make_record):
        with pytest.raises(NotFoundError):
            await store.update_record(make_record(100))

    @pytest.mark.asyncio
    async def test_list_orders_by_settlement_and_filters(self, store, make_record):
        late = await store.create_record(make_record(10, days_ahead=5))
        early = await store.create_record(make_record(20, days_ahead=1))
        await store.create_record(make_record(30, kind=DepositKind.FIXED))
        await store.create_record(make_record(40, user_id=99))

        demand = await store.list_records(user_id=USER_ID, currency=CURRENCY, kind=DepositKind.DEMAND)

        assert [r.id for r in demand] == [early.id, late.id]


class TestGoogleSheetsDepositStore:
    """Tests for the Sheets deposit store against a fake worksheet."""

    @pytest.fixture
    def sheets_store(self):
        client = FakeSheetsClient({})
        return GoogleSheetsDepositStore(client), client

    @pytest.mark.asyncio
    async def test_create_and_read_back(self, sheets_store, make_record):
        store, client = sheets_store
        record = make_record(
            1000,
            kind=DepositKind.FIXED,
            extension_requested=True,
            pending_rate=Decimal("4.35"),
            pending_cycle="week",
        )

        await store.create_record(record)
        loaded = await store.get_record(record.id)

        assert loaded.model_dump() == record.model_dump()
        assert len(client.worksheets["BankDeposits"].rows) == 2

    @pytest.mark.asyncio
    async def test_update_checks_version(self, sheets_store, make_record):
        store, _ = sheets_store
        record = await store.create_record(make_record(100))

        updated = await store.update_record(record.model_copy(update={"principal": Decimal(70)}))
        assert updated.version == 1
        assert (await store.get_record(record.id)).principal == Decimal(70)

        with pytest.raises(StaleRecordError):
            await store.update_record(record)

    @pytest.mark.asyncio
    async def test_delete_and_list(self, sheets_store, make_record):
        store, _ = sheets_store
        keep = await store.create_record(make_record(20, days_ahead=2))
        drop = await store.create_record(make_record(10, days_ahead=1))

        assert await store.delete_record(drop.id, expected_version=0)
        assert not await store.delete_record(uuid4())

        records = await store.list_records(user_id=USER_ID)
        assert [r.id for r in records] == [keep.id]

    @pytest.mark.asyncio
    async def test_retried_append_is_not_duplicated(self, sheets_store, make_record):
        """Test that re-sending an identical row is accepted once."""
        store, client = sheets_store
        record = await store.create_record(make_record(100))

        await store.create_record(record)

        assert len(client.worksheets["BankDeposits"].rows) == 2

    @pytest.mark.asyncio
    async def test_conflicting_duplicate_rejected(self, sheets_store, make_record):
        store, _ = sheets_store
        record = await store.create_record(make_record(100))

        with pytest.raises(DuplicateError):
            await store.create_record(record.model_copy(update={"principal": Decimal(5)}))

    @pytest.mark.asyncio
    async def test_zero_principal_rejected_without_touching_sheet(self, make_record):
        """Test that a zero record is refused up front, not retried against the sheet."""

        class CountingClient(FakeSheetsClient):
            calls = 0

            def get_deposits_sheet(self):
                self.calls += 1
                return super().get_deposits_sheet()

        client = CountingClient({})
        store = GoogleSheetsDepositStore(client)

        with pytest.raises(StorageError):
            await store.create_record(make_record(0))

        assert client.calls == 0

    @pytest.mark.asyncio
    async def test_malformed_row_fails_listing(self, sheets_store):
        store, client = sheets_store
        client.get_deposits_sheet().rows.append(["not-a-uuid", "x"])

        with pytest.raises(StorageError):
            await store.list_records()


class TestCashSheetLayout:
    """Tests for cash sheet header detection."""

    def test_uid_and_value_columns(self):
        layout = CashSheetLayout(["uid", "currency", "value"])
        assert (layout.key_index, layout.currency_index, layout.value_index) == (0, 1, 2)

    def test_legacy_column_names(self):
        """Test that older sheets using `id` and `coin` still resolve."""
        layout = CashSheetLayout(["ID", "Coin"])
        assert layout.key_index == 0
        assert layout.value_index == 1
        assert layout.currency_index is None
        assert layout.matches(["42", "10"], 42, "anything")

    def test_value_field_priority(self):
        layout = CashSheetLayout(["uid", "money", "balance"])
        assert layout.value_index == 2

    def test_missing_key_column(self):
        with pytest.raises(CashLedgerError):
            CashSheetLayout(["name", "value"])

    def test_missing_value_column(self):
        with pytest.raises(CashLedgerError):
            CashSheetLayout(["uid", "currency"])

    def test_new_row(self):
        layout = CashSheetLayout(["uid", "currency", "value", "note"])
        assert layout.new_row(7, "gem") == ["7", "gem", "0", ""]


class TestGoogleSheetsCashLedger:
    """Tests for the Sheets cash adapter against a fake worksheet."""

    @pytest.fixture
    def cash_sheet(self):
        return FakeWorksheet([
            ["uid", "currency", "value"],
            ["42", "coin", "1000"],
            ["42", "gem", "5"],
        ])

    @pytest.fixture
    def ledger(self, cash_sheet):
        return GoogleSheetsCashLedger(FakeSheetsClient({"Monetary": cash_sheet}))

    @pytest.mark.asyncio
    async def test_read_balance(self, ledger):
        assert await ledger.get_cash_balance(42, "coin") == Decimal(1000)
        assert await ledger.get_cash_balance(42, "gem") == Decimal(5)
        assert await ledger.get_cash_balance(7, "coin") is None

    @pytest.mark.asyncio
    async def test_adjust_updates_cell(self, ledger, cash_sheet):
        assert await ledger.adjust_cash(42, "coin", Decimal(-300)) == Decimal(700)
        assert cash_sheet.rows[1][2] == "700"

    @pytest.mark.asyncio
    async def test_adjust_never_goes_negative(self, ledger, cash_sheet):
        with pytest.raises(InsufficientCashError):
            await ledger.adjust_cash(42, "gem", Decimal(-6))
        assert cash_sheet.rows[2][2] == "5"

    @pytest.mark.asyncio
    async def test_adjust_missing_account(self, ledger):
        with pytest.raises(CashAccountNotFoundError):
            await ledger.adjust_cash(7, "coin", Decimal(10))

    @pytest.mark.asyncio
    async def test_ensure_account_appends_zero_row(self, ledger, cash_sheet):
        assert await ledger.ensure_cash_account(7, "coin")
        assert cash_sheet.rows[-1] == ["7", "coin", "0"]
        assert await ledger.get_cash_balance(7, "coin") == Decimal(0)

        assert await ledger.ensure_cash_account(7, "coin")
        assert len(cash_sheet.rows) == 4

    @pytest.mark.asyncio
    async def test_ensure_account_reports_bad_sheet(self):
        ledger = GoogleSheetsCashLedger(FakeSheetsClient({"Monetary": FakeWorksheet([["name"]])}))

        assert not await ledger.ensure_cash_account(7, "coin")


class TestInMemoryCashLedger:
    """Tests for the in-memory cash ledger."""

    @pytest.mark.asyncio
    async def test_adjust_and_overdraw(self):
        ledger = InMemoryCashLedger({(1, "coin"): Decimal(10)})

        assert await ledger.adjust_cash(1, "coin", Decimal(5)) == Decimal(15)
        with pytest.raises(InsufficientCashError):
            await ledger.adjust_cash(1, "coin", Decimal(-16))
        with pytest.raises(CashAccountNotFoundError):
            await ledger.adjust_cash(2, "coin", Decimal(1))


class TestAuditLogging:
    """Tests for audit persistence."""

    @pytest.mark.asyncio
    async def test_events_reach_sheet(self):
        client = FakeSheetsClient({})
        storage = GoogleSheetsAuditStorage(client)
        logger = AuditLogger(storage)

        await logger.log_deposit(
            user_id=42,
            currency="coin",
            record_id=uuid4(),
            amount=Decimal(100),
            new_cash=Decimal(900),
        )

        events = await storage.get_events_by_user(42)
        assert len(events) == 1
        assert events[0].currency == "coin"

    @pytest.mark.asyncio
    async def test_storage_failure_does_not_raise(self):
        """Test that a broken audit backend never breaks the caller."""

        class BrokenStorage(AuditStorageInterface):
            async def append_event(self, event):
                raise StorageError("sheet gone")

            async def get_events_by_user(self, user_id, limit=100):
                return []

            async def get_recent_events(self, limit=100):
                return []

        logger = AuditLogger(BrokenStorage())
        event = AuditEventBuilder.system_error(error_type="test", error_message="boom")

        assert await logger.log(event) is False
