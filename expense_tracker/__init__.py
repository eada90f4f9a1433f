"""
Expense Tracker - Source Package

Core of a personal expense tracker: filtered expense queries,
category analytics and the running-total ledger kept in step with
every expense write.

DESIGN PRINCIPLES:
1. Every read is scoped to exactly one owner
2. Fail early, fail visibly
3. The ledger moves only through atomic increments
4. Every write is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
