"""Running-total ledger package."""

from expense_tracker.ledger.manager import LedgerManager

__all__ = ["LedgerManager"]
