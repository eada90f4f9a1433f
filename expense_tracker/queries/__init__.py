"""Query execution package: filtered lists and category analytics."""

from expense_tracker.queries.analytics import (
    ExpenseAnalytics,
    grand_total,
    group_by_category,
)
from expense_tracker.queries.executor import (
    ExpenseNotFoundError,
    ExpenseQueryExecutor,
    build_filter,
    total_pages,
)

__all__ = [
    "ExpenseAnalytics",
    "ExpenseNotFoundError",
    "ExpenseQueryExecutor",
    "build_filter",
    "grand_total",
    "group_by_category",
    "total_pages",
]
