"""
Aggregation Engine

Groups an owner's expenses inside a report window by category.

The grand total is computed in its own pass over the records rather
than by adding up the groups. With Decimal amounts the two always agree
exactly, and the separate pass keeps the total honest if grouping
ever changes.
"""

from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal

from expense_tracker.models.expense import (
    CENTS,
    AnalyticsSummary,
    CategorySummary,
    Expense,
    ExpenseCategory,
    ExpenseFilter,
    ReportWindow,
    category_percentage,
)
from expense_tracker.services.storage import ExpenseStorageInterface


def group_by_category(expenses: list[Expense]) -> list[CategorySummary]:
    """
    Sum, count and average per category, highest spend first.

    Ties in total keep no particular order.
    """
    totals: dict[ExpenseCategory, Decimal] = defaultdict(lambda: Decimal("0"))
    counts: dict[ExpenseCategory, int] = defaultdict(int)

    for expense in expenses:
        totals[expense.category] += expense.amount
        counts[expense.category] += 1

    groups = [
        CategorySummary(
            category=category,
            total_amount=total,
            count=counts[category],
            avg_amount=(total / counts[category]).quantize(CENTS, rounding=ROUND_HALF_UP),
        )
        for category, total in totals.items()
    ]
    groups.sort(key=lambda group: group.total_amount, reverse=True)
    return groups


def grand_total(expenses: list[Expense]) -> tuple[Decimal, int]:
    """(sum of amounts, number of records) across every category."""
    return sum((expense.amount for expense in expenses), Decimal("0")), len(expenses)


class ExpenseAnalytics:
    """
    Produces the category breakdown for one owner and one window.

    An empty window is not an error: it yields zero totals and
    no groups.
    """

    def __init__(self, storage: ExpenseStorageInterface):
        self._storage = storage

    async def summarize(self, owner: str, window: ReportWindow) -> AnalyticsSummary:
        expenses = await self._storage.find_expenses(ExpenseFilter(
            owner=owner,
            date_from=window.start,
            date_to=window.end,
        ))

        breakdown = group_by_category(expenses)
        total_amount, total_count = grand_total(expenses)

        for group in breakdown:
            group.percentage = category_percentage(group.total_amount, total_amount)

        return AnalyticsSummary(
            category_breakdown=breakdown,
            total_amount=total_amount,
            total_count=total_count,
            period=window.period,
        )
