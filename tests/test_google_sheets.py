"""
Tests for the Google Sheets storage backend.

A fake worksheet stands in for gspread; no network access happens.
"""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from expense_tracker.models import (
    AuditEventBuilder,
    ExpenseFilter,
    PaymentMethod,
    SortField,
)
from expense_tracker.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsExpenseStorage,
    LedgerUpdateError,
    NotFoundError,
)
from expense_tracker.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    EXPENSE_COLUMNS,
    LEDGER_COLUMNS,
)

from tests.conftest import OWNER, OTHER_OWNER, make_expense


class FakeWorksheet:
    """The subset of gspread.Worksheet the storage uses."""

    def __init__(self, header: list[str]):
        self.rows = [list(header)]
        self.fail_writes = False

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, values, value_input_option=None):
        if self.fail_writes:
            raise RuntimeError("quota exceeded")
        self.rows.append([str(v) for v in values])

    def update(self, range_name=None, values=None, value_input_option=None):
        if self.fail_writes:
            raise RuntimeError("quota exceeded")
        index = int(range_name.lstrip("A")) - 1
        self.rows[index] = [str(v) for v in values[0]]

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:
    def __init__(self):
        self.expenses = FakeWorksheet(EXPENSE_COLUMNS)
        self.ledger = FakeWorksheet(LEDGER_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_expenses_sheet(self):
        return self.expenses

    def get_ledger_sheet(self):
        return self.ledger

    def get_audit_sheet(self):
        return self.audit


@pytest.fixture
def sheets_client():
    return FakeSheetsClient()


@pytest.fixture
def sheets_storage(sheets_client):
    return GoogleSheetsExpenseStorage(sheets_client)


class TestSheetsExpenseStorage:
    """Tests for expense rows."""

    async def test_save_and_get(self, sheets_storage):
        expense = make_expense(
            description="team lunch",
            tags=["work", "client"],
            payment_method=PaymentMethod.DIGITAL_WALLET,
            is_recurring=True,
        )
        await sheets_storage.save_expense(expense)

        loaded = await sheets_storage.get_expense(OWNER, expense.id)
        assert loaded == expense

    async def test_row_layout(self, sheets_storage, sheets_client):
        expense = make_expense()
        await sheets_storage.save_expense(expense)

        row = sheets_client.expenses.rows[1]
        assert row[0] == str(expense.id)
        assert row[1] == OWNER
        assert row[5] == "12.50"
        assert row[6] == "Food"
        assert row[10] == "[]"

    async def test_duplicate_rejected(self, sheets_storage):
        expense = make_expense()
        await sheets_storage.save_expense(expense)
        with pytest.raises(DuplicateError):
            await sheets_storage.save_expense(expense)

    async def test_get_is_owner_scoped(self, sheets_storage):
        expense = make_expense()
        await sheets_storage.save_expense(expense)

        assert await sheets_storage.get_expense(OTHER_OWNER, expense.id) is None
        assert await sheets_storage.get_expense(OWNER, uuid4()) is None

    async def test_replace(self, sheets_storage):
        expense = make_expense()
        await sheets_storage.save_expense(expense)

        changed = expense.model_copy(update={"amount": Decimal("20.00"), "title": "Dinner"})
        await sheets_storage.replace_expense(changed)

        loaded = await sheets_storage.get_expense(OWNER, expense.id)
        assert loaded.amount == Decimal("20.00")
        assert loaded.title == "Dinner"

    async def test_replace_missing(self, sheets_storage):
        with pytest.raises(NotFoundError):
            await sheets_storage.replace_expense(make_expense())

    async def test_delete(self, sheets_storage, sheets_client):
        first, second = make_expense(title="a"), make_expense(title="b")
        await sheets_storage.save_expense(first)
        await sheets_storage.save_expense(second)

        assert await sheets_storage.delete_expense(OTHER_OWNER, first.id) is False
        assert await sheets_storage.delete_expense(OWNER, first.id) is True
        assert len(sheets_client.expenses.rows) == 2
        assert await sheets_storage.get_expense(OWNER, second.id) is not None

    async def test_find_and_count(self, sheets_storage):
        for day, amount in ((1, "3.00"), (2, "1.00"), (3, "2.00")):
            await sheets_storage.save_expense(
                make_expense(amount=amount, date=datetime(2024, 1, day))
            )
        await sheets_storage.save_expense(make_expense(owner=OTHER_OWNER))

        query = ExpenseFilter(
            owner=OWNER,
            sort_field=SortField.AMOUNT,
            descending=False,
            limit=2,
        )
        found = await sheets_storage.find_expenses(query)

        assert [e.amount for e in found] == [Decimal("1.00"), Decimal("2.00")]
        assert await sheets_storage.count_expenses(query) == 3

    async def test_malformed_rows_skipped(self, sheets_storage, sheets_client):
        await sheets_storage.save_expense(make_expense())
        sheets_client.expenses.rows.append(["not-a-uuid", OWNER, "garbage"])
        sheets_client.expenses.rows.append([])

        assert await sheets_storage.count_expenses(ExpenseFilter(owner=OWNER)) == 1


class TestSheetsLedger:
    """Tests for the Ledger sheet."""

    async def test_missing_row_is_zero(self, sheets_storage):
        ledger = await sheets_storage.get_ledger(OWNER)
        assert ledger.total_expenses == Decimal("0")

    async def test_increment_creates_then_updates_row(self, sheets_storage, sheets_client):
        await sheets_storage.increment_ledger(OWNER, Decimal("12.50"))
        ledger = await sheets_storage.increment_ledger(OWNER, Decimal("-2.50"))

        assert ledger.total_expenses == Decimal("10.00")
        assert len(sheets_client.ledger.rows) == 2
        assert (await sheets_storage.get_ledger(OWNER)).total_expenses == Decimal("10.00")

    async def test_owners_get_separate_rows(self, sheets_storage):
        await sheets_storage.increment_ledger(OWNER, Decimal("1.00"))
        await sheets_storage.increment_ledger(OTHER_OWNER, Decimal("2.00"))

        assert (await sheets_storage.get_ledger(OWNER)).total_expenses == Decimal("1.00")
        assert (await sheets_storage.get_ledger(OTHER_OWNER)).total_expenses == Decimal("2.00")

    async def test_failed_increment_raises_ledger_error(self, sheets_storage, sheets_client):
        sheets_client.ledger.fail_writes = True
        with pytest.raises(LedgerUpdateError):
            await sheets_storage.increment_ledger(OWNER, Decimal("1.00"))


class TestSheetsAuditStorage:
    """Tests for the AuditLog sheet."""

    async def test_append_and_query(self, sheets_client):
        audit = GoogleSheetsAuditStorage(sheets_client)
        correlation_id = uuid4()

        await audit.append_event(AuditEventBuilder.expense_created(
            owner=OWNER,
            expense_id=uuid4(),
            amount="12.50",
            category="Food",
            correlation_id=correlation_id,
        ))
        await audit.append_event(AuditEventBuilder.ledger_adjusted(
            owner=OWNER,
            delta="12.50",
            new_total="12.50",
            correlation_id=correlation_id,
        ))
        await audit.append_event(AuditEventBuilder.ledger_adjusted(
            owner=OTHER_OWNER,
            delta="1.00",
            new_total="1.00",
        ))

        related = await audit.get_events_by_correlation_id(correlation_id)
        assert [e.event_type.value for e in related] == ["expense_created", "ledger_adjusted"]
        assert related[0].details == {"amount": "12.50", "category": "Food"}

        mine = await audit.get_events_by_owner(OWNER, limit=1)
        assert len(mine) == 1
        assert mine[0].owner == OWNER


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
