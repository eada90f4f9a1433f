"""Tests for the query & filter engine."""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from expense_tracker.models import ExpenseCategory, ExpenseQuery, SortField, SortOrder
from expense_tracker.queries import (
    ExpenseNotFoundError,
    ExpenseQueryExecutor,
    build_filter,
    total_pages,
)

from tests.conftest import OWNER, OTHER_OWNER, make_expense


async def seed(storage, expenses):
    for expense in expenses:
        await storage.save_expense(expense)
    return expenses


@pytest.fixture
def executor(storage):
    return ExpenseQueryExecutor(storage)


class TestPagination:
    """Tests for page arithmetic."""

    @pytest.mark.parametrize("total,limit,expected", [
        (0, 10, 0),
        (1, 10, 1),
        (10, 10, 1),
        (11, 10, 2),
        (25, 5, 5),
    ])
    def test_total_pages(self, total, limit, expected):
        assert total_pages(total, limit) == expected

    async def test_pages_concatenate_to_full_result(self, storage, executor):
        """Test that walking every page yields each record exactly once."""
        days = range(1, 24)
        await seed(storage, [make_expense(date=datetime(2024, 1, d)) for d in days])

        seen = []
        first = await executor.list_expenses(OWNER, ExpenseQuery(page=1, limit=5))
        assert first.total_expenses == 23
        assert first.total_pages == 5

        for page in range(1, first.total_pages + 1):
            result = await executor.list_expenses(OWNER, ExpenseQuery(page=page, limit=5))
            assert result.current_page == page
            seen.extend(e.id for e in result.expenses)

        assert len(seen) == 23
        assert len(set(seen)) == 23

    async def test_page_past_end_is_empty(self, storage, executor):
        await seed(storage, [make_expense()])
        result = await executor.list_expenses(OWNER, ExpenseQuery(page=3, limit=10))

        assert result.expenses == []
        assert result.total_expenses == 1
        assert result.total_pages == 1
        assert result.current_page == 3

    async def test_empty_result(self, executor):
        result = await executor.list_expenses(OWNER, ExpenseQuery())
        assert result.expenses == []
        assert result.total_pages == 0
        assert result.total_expenses == 0


class TestFiltering:
    """Tests for owner scoping, category and date range."""

    async def test_owner_scoping(self, storage, executor):
        """Test another owner's records are never returned or counted."""
        await seed(storage, [
            make_expense(title="mine"),
            make_expense(title="theirs", owner=OTHER_OWNER),
        ])
        result = await executor.list_expenses(OWNER, ExpenseQuery())

        assert [e.title for e in result.expenses] == ["mine"]
        assert result.total_expenses == 1

    async def test_category_filter(self, storage, executor):
        await seed(storage, [
            make_expense(title="Lunch"),
            make_expense(title="Bus", category=ExpenseCategory.TRANSPORTATION),
        ])
        result = await executor.list_expenses(
            OWNER, ExpenseQuery(category=ExpenseCategory.TRANSPORTATION)
        )
        assert [e.title for e in result.expenses] == ["Bus"]

    async def test_date_range_inclusive(self, storage, executor):
        await seed(storage, [
            make_expense(title="before", date=datetime(2023, 12, 31, 23, 0)),
            make_expense(title="first", date=datetime(2024, 1, 1)),
            make_expense(title="last", date=datetime(2024, 1, 31, 18, 0)),
            make_expense(title="after", date=datetime(2024, 2, 1)),
        ])
        query = ExpenseQuery(
            start_date=datetime(2024, 1, 1),
            end_date=datetime(2024, 1, 31, 23, 59, 59, 999999),
            sort_order=SortOrder.ASC,
        )
        result = await executor.list_expenses(OWNER, query)
        assert [e.title for e in result.expenses] == ["first", "last"]

    async def test_single_bound_is_ignored(self, storage, executor):
        """Test that a lone startDate does not filter anything."""
        await seed(storage, [
            make_expense(date=datetime(2020, 1, 1)),
            make_expense(date=datetime(2024, 1, 1)),
        ])
        result = await executor.list_expenses(
            OWNER, ExpenseQuery(start_date=datetime(2023, 1, 1))
        )
        assert result.total_expenses == 2

    def test_build_filter_drops_lone_bound(self):
        store_query = build_filter(OWNER, ExpenseQuery(end_date=datetime(2024, 1, 1)))
        assert store_query.date_from is None
        assert store_query.date_to is None

    def test_build_filter_paging(self):
        store_query = build_filter(OWNER, ExpenseQuery(page=2, limit=5, sort_order=SortOrder.ASC))
        assert store_query.skip == 5
        assert store_query.limit == 5
        assert store_query.descending is False


class TestSorting:
    """Tests for sort field and direction."""

    async def test_default_is_newest_first(self, storage, executor):
        await seed(storage, [
            make_expense(title="old", date=datetime(2024, 1, 1)),
            make_expense(title="new", date=datetime(2024, 3, 1)),
        ])
        result = await executor.list_expenses(OWNER, ExpenseQuery())
        assert [e.title for e in result.expenses] == ["new", "old"]

    async def test_sort_by_amount_ascending(self, storage, executor):
        await seed(storage, [make_expense(amount=a) for a in ("9.99", "0.50", "120.00")])
        result = await executor.list_expenses(
            OWNER, ExpenseQuery(sort_by=SortField.AMOUNT, sort_order=SortOrder.ASC)
        )
        assert [e.amount for e in result.expenses] == [
            Decimal("0.50"), Decimal("9.99"), Decimal("120.00"),
        ]

    async def test_sort_by_title_descending(self, storage, executor):
        await seed(storage, [make_expense(title=t) for t in ("b", "c", "a")])
        result = await executor.list_expenses(
            OWNER, ExpenseQuery(sort_by=SortField.TITLE)
        )
        assert [e.title for e in result.expenses] == ["c", "b", "a"]


class TestLookup:
    """Tests for single-record lookup."""

    async def test_get_own_expense(self, storage, executor):
        [expense] = await seed(storage, [make_expense()])
        found = await executor.get_expense(OWNER, expense.id)
        assert found == expense

    async def test_foreign_expense_looks_missing(self, storage, executor):
        """Test another owner's record is indistinguishable from a missing one."""
        [expense] = await seed(storage, [make_expense(owner=OTHER_OWNER)])

        with pytest.raises(ExpenseNotFoundError):
            await executor.get_expense(OWNER, expense.id)
        with pytest.raises(ExpenseNotFoundError):
            await executor.get_expense(OWNER, uuid4())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
