"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a storage backend because:
1. Users can view their expenses directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: the ledger manager compensates failed writes
- No server-side increment: ledger increments are serialized by a
  process-wide lock, so atomicity holds for a single process only
- Limited query capabilities (we filter and sort in Python)

The implementation follows the abstract interface, so we can swap
to a document database later without changing the query or ledger logic.
"""

import json
import threading
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from expense_tracker.config import GoogleSheetsSettings, get_settings
from expense_tracker.models.expense import (
    Expense,
    ExpenseCategory,
    ExpenseFilter,
    PaymentMethod,
    UserLedger,
)
from expense_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    LedgerUpdateError,
    NotFoundError,
    StorageError,
)


# Column mappings for Expenses sheet
EXPENSE_COLUMNS = [
    "id",
    "owner",
    "created_at",
    "updated_at",
    "title",
    "amount",
    "category",
    "description",
    "date",
    "payment_method",
    "tags_json",
    "is_recurring",
]

# Column mappings for Ledger sheet
LEDGER_COLUMNS = [
    "owner",
    "total_expenses",
    "updated_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "owner",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Serializes read-modify-write on the Ledger sheet within this process
_LEDGER_LOCK = threading.Lock()


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

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

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        """Get or create the Expenses worksheet."""
        return self._get_or_create_sheet(
            self._settings.expenses_sheet_name, EXPENSE_COLUMNS, rows=1000
        )

    def get_ledger_sheet(self) -> gspread.Worksheet:
        """Get or create the Ledger worksheet."""
        return self._get_or_create_sheet(
            self._settings.ledger_sheet_name, LEDGER_COLUMNS, rows=100
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsExpenseStorage(ExpenseStorageInterface):
    """
    Google Sheets implementation of expense and ledger storage.

    Expenses are stored one per row; tags are JSON-serialized.
    The Ledger sheet holds one row per owner.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _expense_to_row(self, expense: Expense) -> list:
        """Convert an Expense to a spreadsheet row."""
        return [
            str(expense.id),
            expense.owner,
            expense.created_at.isoformat(),
            expense.updated_at.isoformat(),
            expense.title,
            str(expense.amount),
            expense.category.value,
            expense.description,
            expense.date.isoformat(),
            expense.payment_method.value,
            json.dumps(expense.tags),
            str(expense.is_recurring),
        ]

    def _row_to_expense(self, row: list) -> Expense:
        """Convert a spreadsheet row to an Expense."""
        tags_json = _safe_get(row, 10)
        return Expense(
            id=UUID(_safe_get(row, 0)),
            owner=_safe_get(row, 1),
            created_at=datetime.fromisoformat(_safe_get(row, 2)),
            updated_at=datetime.fromisoformat(_safe_get(row, 3)),
            title=_safe_get(row, 4),
            amount=Decimal(_safe_get(row, 5)),
            category=ExpenseCategory(_safe_get(row, 6)),
            description=_safe_get(row, 7),
            date=datetime.fromisoformat(_safe_get(row, 8)),
            payment_method=PaymentMethod(_safe_get(row, 9, PaymentMethod.CASH.value)),
            tags=json.loads(tags_json) if tags_json else [],
            is_recurring=_safe_get(row, 11).lower() == "true",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _read_rows(self, sheet: gspread.Worksheet) -> list[list]:
        """All rows including the header (reads are safe to retry)."""
        return sheet.get_all_values()

    def _find_row(
        self,
        rows: list[list],
        owner: str,
        expense_id: UUID,
    ) -> Optional[int]:
        """1-based sheet row index of an owner's expense, or None."""
        for idx, row in enumerate(rows[1:], start=2):  # Row 1 is header
            if row and row[0] == str(expense_id) and _safe_get(row, 1) == owner:
                return idx
        return None

    def _load_expenses(self) -> list[Expense]:
        sheet = self._client.get_expenses_sheet()
        expenses = []
        for row in self._read_rows(sheet)[1:]:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                expenses.append(self._row_to_expense(row))
            except (ValueError, KeyError):
                continue  # Skip malformed rows
        return expenses

    async def save_expense(self, expense: Expense) -> bool:
        """Append a new expense row."""
        try:
            sheet = self._client.get_expenses_sheet()
            rows = self._read_rows(sheet)
            if any(row and row[0] == str(expense.id) for row in rows[1:]):
                raise DuplicateError(f"Expense already exists: {expense.id}")
            sheet.append_row(self._expense_to_row(expense), value_input_option="RAW")
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}")

    async def get_expense(self, owner: str, expense_id: UUID) -> Optional[Expense]:
        """Retrieve an owner's expense by id."""
        try:
            sheet = self._client.get_expenses_sheet()
            rows = self._read_rows(sheet)
            idx = self._find_row(rows, owner, expense_id)
            if idx is None:
                return None
            return self._row_to_expense(rows[idx - 1])
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get expense: {e}")

    async def replace_expense(self, expense: Expense) -> bool:
        """Overwrite an existing expense row."""
        try:
            sheet = self._client.get_expenses_sheet()
            idx = self._find_row(self._read_rows(sheet), expense.owner, expense.id)
            if idx is None:
                raise NotFoundError(f"Expense not found: {expense.id}")
            sheet.update(
                range_name=f"A{idx}",
                values=[self._expense_to_row(expense)],
                value_input_option="RAW",
            )
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update expense: {e}")

    async def delete_expense(self, owner: str, expense_id: UUID) -> bool:
        """Delete an owner's expense row."""
        try:
            sheet = self._client.get_expenses_sheet()
            idx = self._find_row(self._read_rows(sheet), owner, expense_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete expense: {e}")

    async def find_expenses(self, query: ExpenseFilter) -> list[Expense]:
        """Filter, sort and slice in Python."""
        try:
            return query.apply(self._load_expenses())
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}")

    async def count_expenses(self, query: ExpenseFilter) -> int:
        try:
            return sum(1 for expense in self._load_expenses() if query.matches(expense))
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to count expenses: {e}")

    def _find_ledger_row(self, rows: list[list], owner: str) -> Optional[int]:
        for idx, row in enumerate(rows[1:], start=2):
            if row and row[0] == owner:
                return idx
        return None

    async def get_ledger(self, owner: str) -> UserLedger:
        try:
            rows = self._read_rows(self._client.get_ledger_sheet())
            idx = self._find_ledger_row(rows, owner)
            if idx is None:
                return UserLedger(owner=owner)
            row = rows[idx - 1]
            return UserLedger(
                owner=owner,
                total_expenses=Decimal(_safe_get(row, 1, "0")),
                updated_at=datetime.fromisoformat(_safe_get(row, 2)),
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read ledger: {e}")

    async def increment_ledger(self, owner: str, delta: Decimal) -> UserLedger:
        """
        Add `delta` to the owner's row under the process-wide ledger lock.

        Not retried: a repeated increment would double-apply.
        """
        try:
            with _LEDGER_LOCK:
                sheet = self._client.get_ledger_sheet()
                rows = self._read_rows(sheet)
                idx = self._find_ledger_row(rows, owner)
                now = datetime.utcnow()

                if idx is None:
                    total = delta
                    sheet.append_row(
                        [owner, str(total), now.isoformat()],
                        value_input_option="RAW",
                    )
                else:
                    total = Decimal(_safe_get(rows[idx - 1], 1, "0")) + delta
                    sheet.update(
                        range_name=f"A{idx}",
                        values=[[owner, str(total), now.isoformat()]],
                        value_input_option="RAW",
                    )

            return UserLedger(owner=owner, total_expenses=total, updated_at=now)
        except Exception as e:
            raise LedgerUpdateError(f"Failed to increment ledger: {e}")


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
            owner=_safe_get(row, 4) or None,
            entity_type=_safe_get(row, 5) or None,
            entity_id=UUID(_safe_get(row, 6)) if _safe_get(row, 6) else None,
            correlation_id=UUID(_safe_get(row, 7)) if _safe_get(row, 7) else None,
            description=_safe_get(row, 8),
            details=json.loads(_safe_get(row, 9)) if _safe_get(row, 9) else {},
            error_message=_safe_get(row, 10) or None,
            is_user_action=_safe_get(row, 11).lower() == "true",
        )

    def _load_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except (ValueError, KeyError):
                    continue
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = [
                e for e in self._load_events() if e.correlation_id == correlation_id
            ]
            # Sort chronologically
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_events_by_owner(
        self,
        owner: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get an owner's recent events, newest first."""
        try:
            events = [e for e in self._load_events() if e.owner == owner]
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
