"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a document database later
2. Use in-memory storage for testing
3. Keep query and ledger logic decoupled from the backend

The interface is intentionally small - we're not building a full ORM.
Every expense read takes the owner so a backend can never return
another owner's record.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional
from uuid import UUID

from expense_tracker.models.expense import Expense, ExpenseFilter, UserLedger
from expense_tracker.models.audit import AuditEvent


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense and ledger storage.

    Any storage implementation (Google Sheets, MongoDB, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def save_expense(self, expense: Expense) -> bool:
        """
        Insert a new expense.

        Raises:
            DuplicateError: If an expense with the same id exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_expense(self, owner: str, expense_id: UUID) -> Optional[Expense]:
        """
        Retrieve an owner's expense by id.

        Returns:
            The expense, or None if absent or owned by someone else
        """
        pass

    @abstractmethod
    async def replace_expense(self, expense: Expense) -> bool:
        """
        Overwrite a stored expense with a new version.

        Raises:
            NotFoundError: If the expense doesn't exist for its owner
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_expense(self, owner: str, expense_id: UUID) -> bool:
        """
        Delete an owner's expense.

        Returns:
            True if a record was deleted, False if there was none
        """
        pass

    @abstractmethod
    async def find_expenses(self, query: ExpenseFilter) -> list[Expense]:
        """
        Return expenses matching the filter, sorted and sliced as it says.
        """
        pass

    @abstractmethod
    async def count_expenses(self, query: ExpenseFilter) -> int:
        """
        Count all expenses matching the filter, ignoring skip/limit.
        """
        pass

    @abstractmethod
    async def get_ledger(self, owner: str) -> UserLedger:
        """
        Get the owner's running total (zero if never written).
        """
        pass

    @abstractmethod
    async def increment_ledger(self, owner: str, delta: Decimal) -> UserLedger:
        """
        Atomically add `delta` (possibly negative) to the owner's total.

        Implementations must not expose a read-then-write window to
        other writers of the same ledger.

        Returns:
            The ledger after the increment

        Raises:
            LedgerUpdateError: If the increment could not be applied
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one request).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_owner(
        self,
        owner: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent events for one owner.

        Returns:
            List of events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class LedgerUpdateError(StorageError):
    """The ledger increment was not applied."""
    pass
