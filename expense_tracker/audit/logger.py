"""
Audit Logger

DESIGN DECISION: Every expense write and ledger movement is logged.
This provides:
1. Complete traceability of the running total
2. Debugging capability when a compensating action fires
3. Evidence for ledger reconciliation

The audit logger:
- Is async to fit the storage interface
- Gracefully handles failures (doesn't break a request if logging fails)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_tracker.models.audit import AuditEvent, AuditEventBuilder
from expense_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("expense_tracker.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_expense_created(
        self,
        owner: str,
        expense_id: UUID,
        amount: Decimal,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_created(
            owner=owner,
            expense_id=expense_id,
            amount=str(amount),
            category=category,
            correlation_id=correlation_id,
        ))

    async def log_expense_updated(
        self,
        owner: str,
        expense_id: UUID,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_updated(
            owner=owner,
            expense_id=expense_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        ))

    async def log_expense_deleted(
        self,
        owner: str,
        expense_id: UUID,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_deleted(
            owner=owner,
            expense_id=expense_id,
            amount=str(amount),
            correlation_id=correlation_id,
        ))

    async def log_ledger_adjusted(
        self,
        owner: str,
        delta: Decimal,
        new_total: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_adjusted(
            owner=owner,
            delta=str(delta),
            new_total=str(new_total),
            correlation_id=correlation_id,
        ))

    async def log_ledger_compensated(
        self,
        owner: str,
        operation: str,
        expense_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a record write that was reverted after a failed ledger update."""
        await self.log(AuditEventBuilder.ledger_compensated(
            owner=owner,
            operation=operation,
            expense_id=expense_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_ledger_drift(
        self,
        owner: str,
        operation: str,
        expense_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a record write that could be neither matched nor reverted."""
        await self.log(AuditEventBuilder.ledger_drift_detected(
            owner=owner,
            operation=operation,
            expense_id=expense_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_ledger_reconciled(
        self,
        owner: str,
        ledger_total: Decimal,
        record_total: Decimal,
        drift: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_reconciled(
            owner=owner,
            ledger_total=str(ledger_total),
            record_total=str(record_total),
            drift=str(drift),
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        owner: Optional[str],
        operation: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            owner=owner,
            operation=operation,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_query_executed(
        self,
        owner: str,
        result_count: int,
        total_matching: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.query_executed(
            owner=owner,
            result_count=result_count,
            total_matching=total_matching,
            correlation_id=correlation_id,
        ))

    async def log_summary_generated(
        self,
        owner: str,
        period: str,
        total_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.summary_generated(
            owner=owner,
            period=period,
            total_count=total_count,
            correlation_id=correlation_id,
        ))

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        owner: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            owner=owner,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a request and pass it through
    all subsequent operations.
    """
    return uuid4()
