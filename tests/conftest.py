"""
Shared fixtures.

Everything runs against the in-memory stores; no test touches
Google Sheets or the network.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from expense_tracker.api import create_app
from expense_tracker.audit import AuditLogger
from expense_tracker.config import AppSettings
from expense_tracker.ledger import LedgerManager
from expense_tracker.models import (
    Expense,
    ExpenseCategory,
    PaymentMethod,
)
from expense_tracker.orchestrator import create_app_components
from expense_tracker.services.storage import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
)
from expense_tracker.validation import ExpenseValidator


OWNER = "user-a"
OTHER_OWNER = "user-b"


def make_expense(
    title: str = "Lunch",
    amount: str = "12.50",
    category: ExpenseCategory = ExpenseCategory.FOOD,
    date: datetime = datetime(2024, 3, 10, 12, 0),
    owner: str = OWNER,
    **kwargs,
) -> Expense:
    """Build a stored-expense record with sensible defaults."""
    return Expense(
        owner=owner,
        title=title,
        amount=Decimal(amount),
        category=category,
        date=date,
        payment_method=kwargs.pop("payment_method", PaymentMethod.CASH),
        **kwargs,
    )


@pytest.fixture
def settings():
    return AppSettings(default_page_size=10, max_page_size=100)


@pytest.fixture
def storage():
    return InMemoryExpenseStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def ledger(storage, audit_logger):
    return LedgerManager(storage, audit_logger)


@pytest.fixture
def validator(settings):
    return ExpenseValidator(settings)


@pytest.fixture
def app(storage, audit_storage, settings):
    expense_flow, report_flow = create_app_components(storage, audit_storage, settings)
    return create_app(expense_flow, report_flow, settings=settings)


@pytest.fixture
def client(app):
    with TestClient(app, headers={"X-User-Id": OWNER}) as test_client:
        yield test_client
