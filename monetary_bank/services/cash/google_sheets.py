"""
Google Sheets Cash Ledger Adapter

The cash sheet belongs to another subsystem and older deployments named
its columns differently. All of that guessing lives here:
- the user key column may be `uid` or `id`
- the balance column may be any of LEGACY_VALUE_FIELDS
- the `currency` column is optional (single-currency sheets)

The ledger core only ever sees CashLedgerInterface.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional

import gspread
import structlog
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from monetary_bank.services.cash.interface import (
    CashAccountNotFoundError,
    CashLedgerError,
    CashLedgerInterface,
    InsufficientCashError,
)
from monetary_bank.services.storage.google_sheets import GoogleSheetsClient


KEY_FIELDS = ["uid", "id"]
LEGACY_VALUE_FIELDS = ["value", "balance", "amount", "coin", "money"]
CURRENCY_FIELD = "currency"


class CashSheetLayout:
    """Column positions resolved from the cash sheet's header row."""

    def __init__(self, header: list[str]):
        normalized = [h.strip().lower() for h in header]

        self.key_index = self._first_present(normalized, KEY_FIELDS)
        if self.key_index is None:
            raise CashLedgerError(f"Cash sheet has no user key column (tried {KEY_FIELDS})")

        self.value_index = self._first_present(normalized, LEGACY_VALUE_FIELDS)
        if self.value_index is None:
            raise CashLedgerError(
                f"Cash sheet has no balance column (tried {LEGACY_VALUE_FIELDS})"
            )

        self.currency_index = (
            normalized.index(CURRENCY_FIELD) if CURRENCY_FIELD in normalized else None
        )
        self.width = len(header)

    @staticmethod
    def _first_present(header: list[str], candidates: list[str]) -> Optional[int]:
        for name in candidates:
            if name in header:
                return header.index(name)
        return None

    def matches(self, row: list, user_id: int, currency: str) -> bool:
        if len(row) <= self.key_index or row[self.key_index].strip() != str(user_id):
            return False
        if self.currency_index is not None:
            return len(row) > self.currency_index and row[self.currency_index] == currency
        return True

    def new_row(self, user_id: int, currency: str) -> list:
        row = [""] * self.width
        row[self.key_index] = str(user_id)
        row[self.value_index] = "0"
        if self.currency_index is not None:
            row[self.currency_index] = currency
        return row


class GoogleSheetsCashLedger(CashLedgerInterface):
    """Cash ledger backed by the host's cash worksheet."""

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._logger = logger or structlog.get_logger(__name__)

    def _get_sheet(self) -> gspread.Worksheet:
        # The cash sheet is never created here; it belongs to the cash subsystem
        return self._client.get_worksheet(self._client.settings.cash_sheet_name)

    @retry(
        retry=retry_if_not_exception_type(CashLedgerError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _locate(
        self,
        user_id: int,
        currency: str,
    ) -> tuple[gspread.Worksheet, CashSheetLayout, Optional[int], Optional[list]]:
        sheet = self._get_sheet()
        all_rows = sheet.get_all_values()
        if not all_rows:
            raise CashLedgerError("Cash sheet has no header row")

        layout = CashSheetLayout(all_rows[0])
        for idx, row in enumerate(all_rows[1:], start=2):
            if layout.matches(row, user_id, currency):
                return sheet, layout, idx, row
        return sheet, layout, None, None

    @staticmethod
    def _parse_balance(raw: str) -> Decimal:
        try:
            return Decimal(raw.strip() or "0")
        except InvalidOperation:
            raise CashLedgerError(f"Unreadable cash balance: {raw!r}")

    async def get_cash_balance(self, user_id: int, currency: str) -> Optional[Decimal]:
        try:
            _, layout, idx, row = self._locate(user_id, currency)
        except CashLedgerError:
            raise
        except Exception as e:
            raise CashLedgerError(f"Failed to read cash sheet: {e}")

        if idx is None:
            return None
        raw = row[layout.value_index] if len(row) > layout.value_index else ""
        return self._parse_balance(raw)

    async def adjust_cash(self, user_id: int, currency: str, delta: Decimal) -> Decimal:
        try:
            sheet, layout, idx, row = self._locate(user_id, currency)
            if idx is None:
                raise CashAccountNotFoundError(
                    f"No cash account for user {user_id} in {currency}"
                )

            raw = row[layout.value_index] if len(row) > layout.value_index else ""
            current = self._parse_balance(raw)
            new_balance = current + delta
            if new_balance < 0:
                raise InsufficientCashError(current, delta)

            sheet.update_cell(idx, layout.value_index + 1, str(new_balance))
            return new_balance
        except CashLedgerError:
            raise
        except Exception as e:
            raise CashLedgerError(f"Failed to update cash: {e}")

    async def ensure_cash_account(self, user_id: int, currency: str) -> bool:
        try:
            sheet, layout, idx, _ = self._locate(user_id, currency)
            if idx is None:
                sheet.append_row(layout.new_row(user_id, currency), value_input_option="RAW")
            return True
        except Exception as e:
            self._logger.warning(
                "cash_account_create_failed",
                user_id=user_id,
                currency=currency,
                error=str(e),
            )
            return False
