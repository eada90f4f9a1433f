"""HTTP surface: FastAPI routes over the orchestrator flows."""

from expense_tracker.api.app import create_app
from expense_tracker.api.auth import get_current_owner
from expense_tracker.api.errors import ApiError

__all__ = ["ApiError", "create_app", "get_current_owner"]
