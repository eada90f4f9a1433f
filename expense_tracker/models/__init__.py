"""
Data Models Package

This package contains all Pydantic models used in the Expense Tracker.
All data flowing through the system must conform to these schemas.
"""

from expense_tracker.models.expense import (
    ALL_CATEGORIES,
    AnalyticsSummary,
    CategorySummary,
    Expense,
    ExpenseCategory,
    ExpenseCreate,
    ExpenseFilter,
    ExpensePage,
    ExpenseQuery,
    ExpenseUpdate,
    LedgerReconciliation,
    PaymentMethod,
    ReportWindow,
    SortField,
    SortOrder,
    UserLedger,
    ValidationIssue,
    category_percentage,
    parse_timestamp,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "ALL_CATEGORIES",
    "AnalyticsSummary",
    "CategorySummary",
    "Expense",
    "ExpenseCategory",
    "ExpenseCreate",
    "ExpenseFilter",
    "ExpensePage",
    "ExpenseQuery",
    "ExpenseUpdate",
    "LedgerReconciliation",
    "PaymentMethod",
    "ReportWindow",
    "SortField",
    "SortOrder",
    "UserLedger",
    "ValidationIssue",
    "category_percentage",
    "parse_timestamp",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
