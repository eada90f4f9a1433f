"""Tests for the audit logger."""

from uuid import uuid4

import pytest

from expense_tracker.audit import AuditLogger, create_correlation_id
from expense_tracker.models import AuditEventBuilder, AuditEventType, AuditSeverity
from expense_tracker.services.storage import InMemoryAuditStorage, StorageError

from tests.conftest import OWNER


class BrokenAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise StorageError("audit sheet unavailable")


class TestAuditLogger:
    """Tests for AuditLogger."""

    async def test_events_share_correlation_id(self, audit_storage, audit_logger):
        correlation_id = create_correlation_id()
        await audit_logger.log_expense_created(
            owner=OWNER,
            expense_id=uuid4(),
            amount="12.50",
            category="Food",
            correlation_id=correlation_id,
        )
        await audit_logger.log_ledger_adjusted(
            owner=OWNER,
            delta="12.50",
            new_total="12.50",
            correlation_id=correlation_id,
        )

        events = await audit_storage.get_events_by_correlation_id(correlation_id)
        assert [e.event_type for e in events] == [
            AuditEventType.EXPENSE_CREATED,
            AuditEventType.LEDGER_ADJUSTED,
        ]

    async def test_storage_error_event(self, audit_storage, audit_logger):
        await audit_logger.log_storage_error("create_expense", "timeout", owner=OWNER)

        [event] = audit_storage.events
        assert event.event_type == AuditEventType.STORAGE_ERROR
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "timeout"

    async def test_storage_failure_does_not_raise(self):
        """Test a failing audit store never breaks the request."""
        logger = AuditLogger(BrokenAuditStorage())
        event = AuditEventBuilder.storage_error("create_expense", "timeout", owner=OWNER)

        assert await logger.log(event) is False

    async def test_without_storage(self):
        """Test local-only logging reports success."""
        event = AuditEventBuilder.query_executed(OWNER, result_count=0, total_matching=0)
        assert await AuditLogger().log(event) is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
