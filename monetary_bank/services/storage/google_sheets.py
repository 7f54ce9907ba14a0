"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the persistent backend because:
1. Bot operators can inspect and repair deposits directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (a chat bot's bank is fine)
- No transactions (the ledger compensates instead, see ledger/operations.py)
- Version checks are read-then-write, so they only narrow the race window
  with writers outside this process; in-process writers are serialized
  by the ledger's scope locks

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing ledger logic.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from monetary_bank.config import GoogleSheetsSettings, get_settings
from monetary_bank.models.audit import AuditEvent, AuditEventType, AuditSeverity
from monetary_bank.models.deposit import DepositKind, DepositRecord, SettlementCycle
from monetary_bank.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DepositStoreInterface,
    DuplicateError,
    NotFoundError,
    StaleRecordError,
    StorageError,
    settlement_order_key,
)


# Column mappings for the deposits sheet
DEPOSIT_COLUMNS = [
    "id",
    "user_id",
    "currency",
    "principal",
    "kind",
    "rate",
    "cycle",
    "next_settlement_at",
    "extension_requested",
    "pending_rate",
    "pending_cycle",
    "version",
    "created_at",
]

# Column mappings for the audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "currency",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

VERSION_COLUMN = DEPOSIT_COLUMNS.index("version")


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(
        self,
        title: str,
        columns: Optional[list[str]] = None,
        rows: int = 1000,
    ) -> gspread.Worksheet:
        """
        Get a worksheet by title.

        If `columns` is given and the sheet is missing, it is created with
        that header row. Without `columns` a missing sheet is an error.
        """
        spreadsheet = self.get_spreadsheet()
        try:
            return spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            if columns is None:
                raise ConnectionError(f"Worksheet not found: {title}")
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
            return sheet

    def get_deposits_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.deposits_sheet_name, DEPOSIT_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsDepositStore(DepositStoreInterface):
    """
    Google Sheets implementation of the deposit record store.

    One record per row. Dates are ISO strings, amounts are Decimal strings.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _record_to_row(self, record: DepositRecord) -> list:
        """Convert a DepositRecord to a spreadsheet row."""
        return [
            str(record.id),
            str(record.user_id),
            record.currency,
            str(record.principal),
            record.kind.value,
            str(record.rate),
            record.cycle.value,
            record.next_settlement_at.isoformat(),
            str(record.extension_requested),
            str(record.pending_rate) if record.pending_rate is not None else "",
            record.pending_cycle.value if record.pending_cycle else "",
            str(record.version),
            record.created_at.isoformat(),
        ]

    def _row_to_record(self, row: list) -> DepositRecord:
        """Convert a spreadsheet row to a DepositRecord."""
        return DepositRecord(
            id=UUID(_safe_get(row, 0)),
            user_id=int(_safe_get(row, 1)),
            currency=_safe_get(row, 2),
            principal=Decimal(_safe_get(row, 3, "0")),
            kind=DepositKind(_safe_get(row, 4)),
            rate=Decimal(_safe_get(row, 5, "0")),
            cycle=SettlementCycle(_safe_get(row, 6)),
            next_settlement_at=datetime.fromisoformat(_safe_get(row, 7)),
            extension_requested=_safe_get(row, 8).lower() == "true",
            pending_rate=Decimal(_safe_get(row, 9)) if _safe_get(row, 9) else None,
            pending_cycle=SettlementCycle(_safe_get(row, 10)) if _safe_get(row, 10) else None,
            version=int(_safe_get(row, 11, "0")),
            created_at=datetime.fromisoformat(_safe_get(row, 12)) if _safe_get(row, 12) else datetime.now(),
        )

    def _find_row(self, sheet: gspread.Worksheet, record_id: UUID) -> tuple[Optional[int], Optional[list]]:
        """Return (1-based row index, row values) for a record id."""
        all_rows = sheet.get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
            if row and row[0] == str(record_id):
                return idx, row
        return None, None

    async def create_record(self, record: DepositRecord) -> DepositRecord:
        """Append a new deposit record."""
        if record.principal <= 0:
            raise StorageError(f"Refusing to store record {record.id} with zero principal")
        return await self._append_record(record)

    @retry(
        retry=retry_if_not_exception_type(DuplicateError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _append_record(self, record: DepositRecord) -> DepositRecord:
        try:
            sheet = self._client.get_deposits_sheet()
            new_row = self._record_to_row(record)
            idx, row = self._find_row(sheet, record.id)
            if idx is not None:
                # A retried append that already landed
                if row[:len(new_row)] == new_row:
                    return record
                raise DuplicateError(f"Record already exists: {record.id}")
            sheet.append_row(new_row, value_input_option="RAW")
            return record
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save record: {e}")

    async def get_record(self, record_id: UUID) -> Optional[DepositRecord]:
        """Retrieve a record by its ID."""
        try:
            sheet = self._client.get_deposits_sheet()
            _, row = self._find_row(sheet, record_id)
            return self._row_to_record(row) if row else None
        except Exception as e:
            raise StorageError(f"Failed to get record: {e}")

    async def update_record(self, record: DepositRecord) -> DepositRecord:
        """Replace a record after checking its version."""
        if record.principal <= 0:
            raise StorageError(f"Refusing to store record {record.id} with zero principal")
        try:
            sheet = self._client.get_deposits_sheet()
            idx, row = self._find_row(sheet, record.id)
            if idx is None:
                raise NotFoundError(f"Record not found: {record.id}")

            stored_version = int(_safe_get(row, VERSION_COLUMN, "0"))
            if stored_version != record.version:
                raise StaleRecordError(record.id, record.version, stored_version)

            updated = record.model_copy(update={"version": record.version + 1})
            sheet.update(
                range_name=f"A{idx}",
                values=[self._record_to_row(updated)],
                value_input_option="RAW",
            )
            return updated
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update record: {e}")

    async def delete_record(
        self,
        record_id: UUID,
        expected_version: Optional[int] = None,
    ) -> bool:
        """Delete a record by ID."""
        try:
            sheet = self._client.get_deposits_sheet()
            idx, row = self._find_row(sheet, record_id)
            if idx is None:
                return False

            stored_version = int(_safe_get(row, VERSION_COLUMN, "0"))
            if expected_version is not None and stored_version != expected_version:
                raise StaleRecordError(record_id, expected_version, stored_version)

            sheet.delete_rows(idx)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete record: {e}")

    async def list_records(
        self,
        user_id: Optional[int] = None,
        currency: Optional[str] = None,
        kind: Optional[DepositKind] = None,
    ) -> list[DepositRecord]:
        """List records with optional filters."""
        try:
            sheet = self._client.get_deposits_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list records: {e}")

        records = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue

            # Malformed rows fail the whole listing
            try:
                record = self._row_to_record(row)
            except Exception as e:
                raise StorageError(f"Malformed deposit row {row[0]}: {e}")

            if user_id is not None and record.user_id != user_id:
                continue
            if currency is not None and record.currency != currency:
                continue
            if kind is not None and record.kind != kind:
                continue

            records.append(record)

        records.sort(key=settlement_order_key)
        return records


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            user_id=int(_safe_get(row, 4)) if _safe_get(row, 4) else None,
            currency=_safe_get(row, 5) or None,
            entity_type=_safe_get(row, 6) or None,
            entity_id=UUID(_safe_get(row, 7)) if _safe_get(row, 7) else None,
            correlation_id=UUID(_safe_get(row, 8)) if _safe_get(row, 8) else None,
            description=_safe_get(row, 9),
            details=json.loads(_safe_get(row, 10)) if _safe_get(row, 10) else {},
            error_message=_safe_get(row, 11) or None,
            is_user_action=_safe_get(row, 12).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue  # Skip malformed rows
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_user(
        self,
        user_id: int,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get events for one user."""
        try:
            events = [e for e in self._read_events() if e.user_id == user_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events.sort(key=lambda e: e.timestamp)
        return events[:limit]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._read_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
