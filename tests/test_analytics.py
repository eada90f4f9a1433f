"""Tests for the aggregation engine."""

from datetime import datetime
from decimal import Decimal

import pytest

from expense_tracker.models import ExpenseCategory, ReportWindow
from expense_tracker.queries import ExpenseAnalytics, grand_total, group_by_category

from tests.conftest import OWNER, OTHER_OWNER, make_expense


FOOD = ExpenseCategory.FOOD
TRAVEL = ExpenseCategory.TRAVEL
BILLS = ExpenseCategory.BILLS


@pytest.fixture
def analytics(storage):
    return ExpenseAnalytics(storage)


async def seed(storage, expenses):
    for expense in expenses:
        await storage.save_expense(expense)


class TestGrouping:
    """Tests for the pure grouping helpers."""

    def test_group_totals_counts_and_averages(self):
        expenses = [
            make_expense(amount="10.00", category=FOOD),
            make_expense(amount="5.00", category=FOOD),
            make_expense(amount="1.00", category=FOOD),
            make_expense(amount="100.00", category=TRAVEL),
        ]
        groups = group_by_category(expenses)

        assert [g.category for g in groups] == [TRAVEL, FOOD]
        food = groups[1]
        assert food.total_amount == Decimal("16.00")
        assert food.count == 3
        assert food.avg_amount == Decimal("5.33")

    def test_average_rounds_half_up(self):
        groups = group_by_category([
            make_expense(amount="0.01"),
            make_expense(amount="0.02"),
        ])
        assert groups[0].avg_amount == Decimal("0.02")

    def test_grand_total(self):
        total, count = grand_total([make_expense(amount="1.10"), make_expense(amount="2.20")])
        assert total == Decimal("3.30")
        assert count == 2

    def test_empty(self):
        assert group_by_category([]) == []
        assert grand_total([]) == (Decimal("0"), 0)


class TestSummary:
    """Tests for ExpenseAnalytics.summarize."""

    async def test_month_window(self, storage, analytics):
        """Test only the month's records are counted."""
        await seed(storage, [
            make_expense(amount="30.00", category=FOOD, date=datetime(2024, 3, 1)),
            make_expense(amount="10.00", category=BILLS, date=datetime(2024, 3, 31, 23, 59)),
            make_expense(amount="999.00", category=FOOD, date=datetime(2024, 4, 1)),
            make_expense(amount="999.00", category=FOOD, date=datetime(2024, 2, 29, 23, 59)),
        ])
        summary = await analytics.summarize(OWNER, ReportWindow(year=2024, month=3))

        assert summary.period == "2024-3"
        assert summary.total_amount == Decimal("40.00")
        assert summary.total_count == 2
        assert [g.category for g in summary.category_breakdown] == [FOOD, BILLS]

    async def test_year_window(self, storage, analytics):
        await seed(storage, [
            make_expense(date=datetime(2023, 1, 1)),
            make_expense(date=datetime(2023, 12, 31, 22, 0)),
            make_expense(date=datetime(2024, 1, 1)),
        ])
        summary = await analytics.summarize(OWNER, ReportWindow(year=2023))

        assert summary.period == "2023"
        assert summary.total_count == 2

    async def test_group_sums_match_grand_total(self, storage, analytics):
        """Test the breakdown adds up to the grand total exactly."""
        amounts = ["0.10", "0.20", "0.30", "19.99", "5.01", "7.77"]
        categories = [FOOD, TRAVEL, BILLS, FOOD, TRAVEL, BILLS]
        await seed(storage, [
            make_expense(amount=a, category=c, date=datetime(2024, 5, i + 1))
            for i, (a, c) in enumerate(zip(amounts, categories))
        ])
        summary = await analytics.summarize(OWNER, ReportWindow(year=2024, month=5))

        assert sum(g.total_amount for g in summary.category_breakdown) == summary.total_amount
        assert sum(g.count for g in summary.category_breakdown) == summary.total_count

    async def test_percentages(self, storage, analytics):
        await seed(storage, [
            make_expense(amount="1.00", category=FOOD, date=datetime(2024, 1, 2)),
            make_expense(amount="2.00", category=TRAVEL, date=datetime(2024, 1, 3)),
        ])
        summary = await analytics.summarize(OWNER, ReportWindow(year=2024, month=1))

        shares = {g.category: g.percentage for g in summary.category_breakdown}
        assert shares == {TRAVEL: Decimal("66.7"), FOOD: Decimal("33.3")}

    async def test_empty_window(self, analytics):
        """Test an empty window is zeros, not an error."""
        summary = await analytics.summarize(OWNER, ReportWindow(year=2024, month=7))

        assert summary.category_breakdown == []
        assert summary.total_amount == Decimal("0")
        assert summary.total_count == 0

    async def test_other_owners_excluded(self, storage, analytics):
        await seed(storage, [
            make_expense(amount="5.00", date=datetime(2024, 1, 5)),
            make_expense(amount="500.00", owner=OTHER_OWNER, date=datetime(2024, 1, 5)),
        ])
        summary = await analytics.summarize(OWNER, ReportWindow(year=2024))
        assert summary.total_amount == Decimal("5.00")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
