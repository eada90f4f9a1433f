"""
Audit Models for Expense Tracker

Every expense write and every ledger movement is logged for audit purposes.
This provides:
1. Traceability of each change to an owner's running total
2. Debugging information when a ledger adjustment fails
3. Evidence for reconciling drift between ledger and records

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Expense writes
    EXPENSE_CREATED = "expense_created"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"

    # Ledger
    LEDGER_ADJUSTED = "ledger_adjusted"
    LEDGER_COMPENSATED = "ledger_compensated"
    LEDGER_DRIFT_DETECTED = "ledger_drift_detected"
    LEDGER_RECONCILED = "ledger_reconciled"

    # Reads
    VALIDATION_FAILED = "validation_failed"
    QUERY_EXECUTED = "query_executed"
    SUMMARY_GENERATED = "summary_generated"

    # System events
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who it happened to
    owner: Optional[str] = Field(
        default=None,
        description="Owner whose expenses or ledger were touched"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'ledger', 'query')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one request)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user request?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner": self.owner,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, owner, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.owner or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_created(owner, expense_id, amount, correlation_id)
        event = AuditEventBuilder.ledger_adjusted(owner, delta, new_total, correlation_id)
    """

    @staticmethod
    def expense_created(
        owner: str,
        expense_id: UUID,
        amount: str,
        category: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            owner=owner,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense created: {category} {amount}",
            details={
                "amount": amount,
                "category": category,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_updated(
        owner: str,
        expense_id: UUID,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            owner=owner,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense updated: {', '.join(changed_fields) or 'no fields'}",
            details={
                "changed_fields": changed_fields,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_deleted(
        owner: str,
        expense_id: UUID,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            owner=owner,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense deleted: {amount}",
            details={
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def ledger_adjusted(
        owner: str,
        delta: str,
        new_total: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_ADJUSTED,
            owner=owner,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Ledger adjusted by {delta}",
            details={
                "delta": delta,
                "new_total": new_total,
            },
        )

    @staticmethod
    def ledger_compensated(
        owner: str,
        operation: str,
        expense_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_COMPENSATED,
            severity=AuditSeverity.WARNING,
            owner=owner,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Ledger update failed; {operation} reverted",
            details={
                "operation": operation,
            },
            error_message=error_message,
        )

    @staticmethod
    def ledger_drift_detected(
        owner: str,
        operation: str,
        expense_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_DRIFT_DETECTED,
            severity=AuditSeverity.CRITICAL,
            owner=owner,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Ledger may have drifted: {operation} could not be reverted",
            details={
                "operation": operation,
            },
            error_code="LEDGER_DRIFT",
            error_message=error_message,
        )

    @staticmethod
    def ledger_reconciled(
        owner: str,
        ledger_total: str,
        record_total: str,
        drift: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_RECONCILED,
            severity=AuditSeverity.WARNING if Decimal(drift) else AuditSeverity.INFO,
            owner=owner,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Ledger reconciled (drift {drift})",
            details={
                "ledger_total": ledger_total,
                "record_total": record_total,
                "drift": drift,
            },
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        owner: Optional[str],
        operation: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            owner=owner,
            entity_type="request",
            correlation_id=correlation_id,
            description=f"{operation} rejected with {len(issues)} issues",
            details={
                "operation": operation,
                "issues": issues,
            },
        )

    @staticmethod
    def query_executed(
        owner: str,
        result_count: int,
        total_matching: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUERY_EXECUTED,
            severity=AuditSeverity.DEBUG,
            owner=owner,
            entity_type="query",
            correlation_id=correlation_id,
            description=f"Expense query returned {result_count} of {total_matching}",
            details={
                "result_count": result_count,
                "total_matching": total_matching,
            },
        )

    @staticmethod
    def summary_generated(
        owner: str,
        period: str,
        total_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUMMARY_GENERATED,
            severity=AuditSeverity.DEBUG,
            owner=owner,
            entity_type="summary",
            correlation_id=correlation_id,
            description=f"Summary for {period} over {total_count} expenses",
            details={
                "period": period,
                "total_count": total_count,
            },
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        owner: Optional[str] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            owner=owner,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
            correlation_id=correlation_id,
        )
