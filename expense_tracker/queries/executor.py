"""
Query & Filter Engine

DESIGN DECISION: Query execution is DETERMINISTIC and OWNER-SCOPED.
A validated ExpenseQuery is translated into a store-level ExpenseFilter;
the engine never builds loosely-typed query objects.

Two behaviours are kept on purpose:
- The date range applies only when BOTH bounds are given. A single
  bound is ignored rather than treated as open-ended.
- There is no secondary sort key. Records with equal sort values may
  change relative order between requests, so pagination over ties is
  not deterministic.
"""

import math
from typing import Optional
from uuid import UUID

from expense_tracker.models.expense import (
    Expense,
    ExpenseFilter,
    ExpensePage,
    ExpenseQuery,
    SortOrder,
)
from expense_tracker.services.storage import ExpenseStorageInterface, NotFoundError


class ExpenseNotFoundError(NotFoundError):
    """Expense absent, or owned by someone else (indistinguishable)."""

    def __init__(self, expense_id: Optional[UUID] = None):
        self.expense_id = expense_id
        super().__init__("Expense not found")


def build_filter(owner: str, query: ExpenseQuery) -> ExpenseFilter:
    """Translate list options into the store query for one page."""
    date_from = date_to = None
    if query.has_date_range:
        date_from, date_to = query.start_date, query.end_date

    return ExpenseFilter(
        owner=owner,
        category=query.category,
        date_from=date_from,
        date_to=date_to,
        sort_field=query.sort_by,
        descending=query.sort_order == SortOrder.DESC,
        skip=query.skip,
        limit=query.limit,
    )


def total_pages(total: int, limit: int) -> int:
    """ceil(total / limit); zero when nothing matches."""
    return math.ceil(total / limit)


class ExpenseQueryExecutor:
    """
    Executes list and lookup reads against expense storage.

    GUARANTEES:
    - Only the requesting owner's records are ever returned
    - Counts cover every matching record, not just the page
    - Missing and foreign records look the same to the caller
    """

    def __init__(self, storage: ExpenseStorageInterface):
        self._storage = storage

    async def list_expenses(self, owner: str, query: ExpenseQuery) -> ExpensePage:
        """Return one page of the owner's matching expenses."""
        store_query = build_filter(owner, query)

        expenses = await self._storage.find_expenses(store_query)
        total = await self._storage.count_expenses(store_query)

        return ExpensePage(
            expenses=expenses,
            total_pages=total_pages(total, query.limit),
            current_page=query.page,
            total_expenses=total,
        )

    async def get_expense(self, owner: str, expense_id: UUID) -> Expense:
        """
        Fetch one of the owner's expenses.

        Raises:
            ExpenseNotFoundError: If absent or not owned by `owner`
        """
        expense = await self._storage.get_expense(owner, expense_id)
        if expense is None:
            raise ExpenseNotFoundError(expense_id)
        return expense
