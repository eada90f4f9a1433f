"""
In-Memory Storage Implementation

Used by the test suite and by the `memory` storage backend for local
development. Records are copied in and out so callers can never mutate
stored state behind the store's back.

Ledger increments run under an asyncio.Lock, which makes them atomic
for every coroutine sharing this store.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from expense_tracker.models.expense import Expense, ExpenseFilter, UserLedger
from expense_tracker.models.audit import AuditEvent
from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
)


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """Dict-backed expense and ledger storage."""

    def __init__(self):
        self._expenses: dict[UUID, Expense] = {}
        self._ledgers: dict[str, UserLedger] = {}
        self._ledger_lock = asyncio.Lock()

    async def save_expense(self, expense: Expense) -> bool:
        if expense.id in self._expenses:
            raise DuplicateError(f"Expense already exists: {expense.id}")
        self._expenses[expense.id] = expense.model_copy(deep=True)
        return True

    async def get_expense(self, owner: str, expense_id: UUID) -> Optional[Expense]:
        expense = self._expenses.get(expense_id)
        if expense is None or expense.owner != owner:
            return None
        return expense.model_copy(deep=True)

    async def replace_expense(self, expense: Expense) -> bool:
        stored = self._expenses.get(expense.id)
        if stored is None or stored.owner != expense.owner:
            raise NotFoundError(f"Expense not found: {expense.id}")
        self._expenses[expense.id] = expense.model_copy(deep=True)
        return True

    async def delete_expense(self, owner: str, expense_id: UUID) -> bool:
        stored = self._expenses.get(expense_id)
        if stored is None or stored.owner != owner:
            return False
        del self._expenses[expense_id]
        return True

    async def find_expenses(self, query: ExpenseFilter) -> list[Expense]:
        return [
            expense.model_copy(deep=True)
            for expense in query.apply(list(self._expenses.values()))
        ]

    async def count_expenses(self, query: ExpenseFilter) -> int:
        return sum(1 for expense in self._expenses.values() if query.matches(expense))

    async def get_ledger(self, owner: str) -> UserLedger:
        ledger = self._ledgers.get(owner)
        if ledger is None:
            return UserLedger(owner=owner)
        return ledger.model_copy()

    async def increment_ledger(self, owner: str, delta: Decimal) -> UserLedger:
        async with self._ledger_lock:
            current = self._ledgers.get(owner) or UserLedger(owner=owner)
            updated = UserLedger(
                owner=owner,
                total_expenses=current.total_expenses + delta,
                updated_at=datetime.utcnow(),
            )
            self._ledgers[owner] = updated
            return updated.model_copy()


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_owner(
        self,
        owner: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.owner == owner]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
