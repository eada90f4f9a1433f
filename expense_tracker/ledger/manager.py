"""
Running-Total Ledger

DESIGN DECISION: Every expense write goes through the LedgerManager so
that the owner's `totalExpenses` moves in the same logical operation:

- create: +amount
- update: +(new - old), only when the amount actually changes
- delete: -amount

The store applies each adjustment with an atomic increment. If the
increment fails after the record write succeeded, the record write is
reverted (compensating action) and the caller gets a LedgerUpdateError.
If the revert fails too, a critical drift event is audited so the
ledger can be reconciled later.

Writes for one owner are serialized in-process, so two updates to the
same record never compute their delta from the same stale amount.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from expense_tracker.audit import AuditLogger
from expense_tracker.models.expense import (
    Expense,
    ExpenseCreate,
    ExpenseFilter,
    ExpenseUpdate,
    LedgerReconciliation,
    UserLedger,
)
from expense_tracker.queries.executor import ExpenseNotFoundError
from expense_tracker.services.storage import ExpenseStorageInterface, LedgerUpdateError


class LedgerManager:
    """
    Applies expense writes and their ledger adjustments as one unit.
    """

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._owner_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._logger = structlog.get_logger("expense_tracker.ledger")

    @asynccontextmanager
    async def _serialized(self, owner: str) -> AsyncIterator[None]:
        """
        Hold the owner's write lock.

        A lock exists only while a write for the owner is running or
        waiting.
        """
        lock = self._owner_locks.setdefault(owner, asyncio.Lock())
        self._lock_users[owner] = self._lock_users.get(owner, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[owner] -= 1
            if not self._lock_users[owner]:
                del self._lock_users[owner]
                del self._owner_locks[owner]

    async def create(
        self,
        owner: str,
        payload: ExpenseCreate,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """Store a new expense and add its amount to the ledger."""
        expense = payload.to_expense(owner)

        async with self._serialized(owner):
            await self._storage.save_expense(expense)
            await self._adjust(
                owner=owner,
                delta=expense.amount,
                operation="create",
                expense_id=expense.id,
                compensate=lambda: self._storage.delete_expense(owner, expense.id),
                correlation_id=correlation_id,
            )

        if self._audit_logger:
            await self._audit_logger.log_expense_created(
                owner=owner,
                expense_id=expense.id,
                amount=expense.amount,
                category=expense.category.value,
                correlation_id=correlation_id,
            )
        return expense

    async def update(
        self,
        owner: str,
        expense_id: UUID,
        changes: ExpenseUpdate,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Apply a partial update; move the ledger by the amount difference.

        Raises:
            ExpenseNotFoundError: If absent or not owned by `owner`
            LedgerUpdateError: If the ledger could not follow (update reverted)
        """
        async with self._serialized(owner):
            current = await self._storage.get_expense(owner, expense_id)
            if current is None:
                raise ExpenseNotFoundError(expense_id)

            updated = changes.apply_to(current)
            await self._storage.replace_expense(updated)

            if "amount" in changes.model_fields_set and updated.amount != current.amount:
                await self._adjust(
                    owner=owner,
                    delta=updated.amount - current.amount,
                    operation="update",
                    expense_id=expense_id,
                    compensate=lambda: self._storage.replace_expense(current),
                    correlation_id=correlation_id,
                )

        if self._audit_logger:
            await self._audit_logger.log_expense_updated(
                owner=owner,
                expense_id=expense_id,
                changed_fields=sorted(changes.model_fields_set),
                correlation_id=correlation_id,
            )
        return updated

    async def delete(
        self,
        owner: str,
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Delete an expense and subtract its amount from the ledger.

        Returns the deleted record.
        """
        async with self._serialized(owner):
            current = await self._storage.get_expense(owner, expense_id)
            if current is None:
                raise ExpenseNotFoundError(expense_id)

            if not await self._storage.delete_expense(owner, expense_id):
                raise ExpenseNotFoundError(expense_id)

            await self._adjust(
                owner=owner,
                delta=-current.amount,
                operation="delete",
                expense_id=expense_id,
                compensate=lambda: self._storage.save_expense(current),
                correlation_id=correlation_id,
            )

        if self._audit_logger:
            await self._audit_logger.log_expense_deleted(
                owner=owner,
                expense_id=expense_id,
                amount=current.amount,
                correlation_id=correlation_id,
            )
        return current

    async def get_ledger(self, owner: str) -> UserLedger:
        return await self._storage.get_ledger(owner)

    async def reconcile(
        self,
        owner: str,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerReconciliation:
        """
        Compare the ledger with the sum of the owner's records and
        correct any drift through the atomic increment.
        """
        async with self._serialized(owner):
            ledger = await self._storage.get_ledger(owner)
            records = await self._storage.find_expenses(ExpenseFilter(owner=owner))
            record_total = sum((expense.amount for expense in records), Decimal("0"))
            drift = ledger.total_expenses - record_total

            if drift:
                await self._storage.increment_ledger(owner, -drift)

        if self._audit_logger:
            await self._audit_logger.log_ledger_reconciled(
                owner=owner,
                ledger_total=ledger.total_expenses,
                record_total=record_total,
                drift=drift,
                correlation_id=correlation_id,
            )

        return LedgerReconciliation(
            owner=owner,
            ledger_total=ledger.total_expenses,
            record_total=record_total,
            drift=drift,
            corrected=bool(drift),
        )

    async def _adjust(
        self,
        owner: str,
        delta: Decimal,
        operation: str,
        expense_id: UUID,
        compensate: Callable[[], Awaitable],
        correlation_id: Optional[UUID] = None,
    ) -> UserLedger:
        """
        Increment the ledger; on failure run `compensate` to undo the record write.
        """
        try:
            ledger = await self._storage.increment_ledger(owner, delta)
        except Exception as e:
            self._logger.error(
                "ledger_increment_failed",
                owner=owner,
                operation=operation,
                expense_id=str(expense_id),
                error=str(e),
            )
            try:
                await compensate()
            except Exception as compensation_error:
                if self._audit_logger:
                    await self._audit_logger.log_ledger_drift(
                        owner=owner,
                        operation=operation,
                        expense_id=expense_id,
                        error_message=f"{e}; revert failed: {compensation_error}",
                        correlation_id=correlation_id,
                    )
                raise LedgerUpdateError(
                    f"Ledger update failed and {operation} could not be reverted"
                ) from compensation_error

            if self._audit_logger:
                await self._audit_logger.log_ledger_compensated(
                    owner=owner,
                    operation=operation,
                    expense_id=expense_id,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise LedgerUpdateError(
                f"Ledger update failed; {operation} was reverted"
            ) from e

        if self._audit_logger:
            await self._audit_logger.log_ledger_adjusted(
                owner=owner,
                delta=delta,
                new_total=ledger.total_expenses,
                correlation_id=correlation_id,
            )
        return ledger
