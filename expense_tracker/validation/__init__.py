"""Request validation package."""

from expense_tracker.validation.validator import (
    ExpenseValidationError,
    ExpenseValidator,
    issues_from_pydantic,
)

__all__ = ["ExpenseValidationError", "ExpenseValidator", "issues_from_pydantic"]
