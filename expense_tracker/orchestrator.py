"""
Main Orchestrator for Expense Tracker

This module ties together all the components and defines the
request-level flows for:
1. Expense writes and lookups (validate → ledger manager → audit)
2. Reports (validate → query engine / aggregation engine → audit)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches storage before validation passes
- Every record write goes through the ledger manager
- Storage failures are audited and re-raised for the caller to report

This is the "glue" the HTTP layer calls; it knows nothing about HTTP.
"""

from collections.abc import Mapping
from typing import Optional
from uuid import UUID

import structlog

from expense_tracker.audit import AuditLogger, create_correlation_id
from expense_tracker.config import AppSettings, StorageBackend, get_settings
from expense_tracker.ledger import LedgerManager
from expense_tracker.models.expense import (
    AnalyticsSummary,
    Expense,
    ExpenseCreate,
    ExpensePage,
    ExpenseUpdate,
    LedgerReconciliation,
    UserLedger,
)
from expense_tracker.queries import (
    ExpenseAnalytics,
    ExpenseNotFoundError,
    ExpenseQueryExecutor,
)
from expense_tracker.services.storage import (
    AuditStorageInterface,
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    StorageError,
)
from expense_tracker.validation import ExpenseValidationError, ExpenseValidator


logger = structlog.get_logger("expense_tracker.orchestrator")


def parse_expense_id(raw: str) -> UUID:
    """
    Parse a path id. A malformed id is reported exactly like a
    missing record.
    """
    try:
        return UUID(str(raw))
    except ValueError:
        raise ExpenseNotFoundError()


class ExpenseFlow:
    """
    Orchestrates single-expense operations and the ledger.

    Flow for writes:
    1. Payload already validated (pydantic model)
    2. Ledger manager writes the record and adjusts the total
    3. Audit trail records both
    """

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        ledger_manager: Optional[LedgerManager] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._ledger = ledger_manager or LedgerManager(storage, audit_logger)
        self._executor = ExpenseQueryExecutor(storage)

    async def _storage_failed(
        self,
        operation: str,
        error: Exception,
        owner: str,
        correlation_id: UUID,
    ) -> None:
        logger.error("storage_failed", operation=operation, owner=owner, error=str(error))
        if self._audit_logger:
            await self._audit_logger.log_storage_error(
                operation=operation,
                error_message=str(error),
                owner=owner,
                correlation_id=correlation_id,
            )

    async def get_expense(
        self,
        owner: str,
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        correlation_id = correlation_id or create_correlation_id()
        try:
            return await self._executor.get_expense(owner, parse_expense_id(expense_id))
        except StorageError as e:
            if not isinstance(e, ExpenseNotFoundError):
                await self._storage_failed("get_expense", e, owner, correlation_id)
            raise

    async def create_expense(
        self,
        owner: str,
        payload: ExpenseCreate,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        correlation_id = correlation_id or create_correlation_id()
        try:
            return await self._ledger.create(owner, payload, correlation_id)
        except StorageError as e:
            await self._storage_failed("create_expense", e, owner, correlation_id)
            raise

    async def update_expense(
        self,
        owner: str,
        expense_id: str,
        changes: ExpenseUpdate,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        correlation_id = correlation_id or create_correlation_id()
        try:
            return await self._ledger.update(
                owner, parse_expense_id(expense_id), changes, correlation_id
            )
        except StorageError as e:
            if not isinstance(e, ExpenseNotFoundError):
                await self._storage_failed("update_expense", e, owner, correlation_id)
            raise

    async def delete_expense(
        self,
        owner: str,
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        correlation_id = correlation_id or create_correlation_id()
        try:
            return await self._ledger.delete(
                owner, parse_expense_id(expense_id), correlation_id
            )
        except StorageError as e:
            if not isinstance(e, ExpenseNotFoundError):
                await self._storage_failed("delete_expense", e, owner, correlation_id)
            raise

    async def get_ledger(self, owner: str) -> UserLedger:
        return await self._ledger.get_ledger(owner)

    async def reconcile_ledger(
        self,
        owner: str,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerReconciliation:
        correlation_id = correlation_id or create_correlation_id()
        try:
            return await self._ledger.reconcile(owner, correlation_id)
        except StorageError as e:
            await self._storage_failed("reconcile_ledger", e, owner, correlation_id)
            raise


class ReportFlow:
    """
    Orchestrates read-only reports: paginated lists and category summaries.

    Reads need no coordination; they can run concurrently with anything.
    """

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[ExpenseValidator] = None,
    ):
        self._executor = ExpenseQueryExecutor(storage)
        self._analytics = ExpenseAnalytics(storage)
        self._validator = validator or ExpenseValidator()
        self._audit_logger = audit_logger

    async def _validation_failed(
        self,
        operation: str,
        error: ExpenseValidationError,
        owner: str,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_validation_failed(
                owner=owner,
                operation=operation,
                issues=error.to_dicts(),
                correlation_id=correlation_id,
            )

    async def list_expenses(
        self,
        owner: str,
        params: Mapping,
        correlation_id: Optional[UUID] = None,
    ) -> ExpensePage:
        """
        Validate list parameters and return one page.

        Raises:
            ExpenseValidationError: Before storage is touched
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            query = self._validator.parse_expense_query(params)
        except ExpenseValidationError as e:
            await self._validation_failed("list_expenses", e, owner, correlation_id)
            raise

        page = await self._executor.list_expenses(owner, query)

        if self._audit_logger:
            await self._audit_logger.log_query_executed(
                owner=owner,
                result_count=len(page.expenses),
                total_matching=page.total_expenses,
                correlation_id=correlation_id,
            )
        return page

    async def summarize(
        self,
        owner: str,
        params: Mapping,
        correlation_id: Optional[UUID] = None,
    ) -> AnalyticsSummary:
        """Validate year/month and return the category breakdown."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            window = self._validator.parse_report_window(params)
        except ExpenseValidationError as e:
            await self._validation_failed("summarize", e, owner, correlation_id)
            raise

        summary = await self._analytics.summarize(owner, window)

        if self._audit_logger:
            await self._audit_logger.log_summary_generated(
                owner=owner,
                period=summary.period,
                total_count=summary.total_count,
                correlation_id=correlation_id,
            )
        return summary


def create_storage(
    backend: Optional[StorageBackend] = None,
) -> tuple[ExpenseStorageInterface, AuditStorageInterface]:
    """Build the expense and audit storage for the configured backend."""
    backend = backend or get_settings().app.storage_backend

    if backend == StorageBackend.GOOGLE_SHEETS:
        sheets_client = GoogleSheetsClient()
        return (
            GoogleSheetsExpenseStorage(sheets_client),
            GoogleSheetsAuditStorage(sheets_client),
        )
    return InMemoryExpenseStorage(), InMemoryAuditStorage()


def create_app_components(
    storage: Optional[ExpenseStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    settings: Optional[AppSettings] = None,
) -> tuple[ExpenseFlow, ReportFlow]:
    """
    Factory function to create all application components.

    Args:
        storage: Expense storage to use. If None, the configured
                 backend is created.
        audit_storage: Audit persistence. If None and storage is given,
                       audit events are only logged locally.
        settings: App settings for parameter validation (page sizes).
                  If None, the environment settings are used.

    Returns:
        (expense_flow, report_flow)
    """
    settings = settings or get_settings().app
    if storage is None:
        storage, audit_storage = create_storage(settings.storage_backend)

    audit_logger = AuditLogger(audit_storage)

    expense_flow = ExpenseFlow(storage=storage, audit_logger=audit_logger)
    report_flow = ReportFlow(
        storage=storage,
        audit_logger=audit_logger,
        validator=ExpenseValidator(settings),
    )

    return expense_flow, report_flow
