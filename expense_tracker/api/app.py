"""FastAPI application factory."""

from typing import Optional

from fastapi import FastAPI

from expense_tracker import __version__
from expense_tracker.api.errors import register_error_handlers
from expense_tracker.api.routes import router
from expense_tracker.config import AppSettings, get_settings
from expense_tracker.orchestrator import (
    ExpenseFlow,
    ReportFlow,
    create_app_components,
)


def create_app(
    expense_flow: Optional[ExpenseFlow] = None,
    report_flow: Optional[ReportFlow] = None,
    settings: Optional[AppSettings] = None,
) -> FastAPI:
    """
    Build the API.

    Flows default to the ones wired by `create_app_components`
    for the configured storage backend.
    """
    settings = settings or get_settings().app
    if expense_flow is None or report_flow is None:
        expense_flow, report_flow = create_app_components(settings=settings)

    app = FastAPI(
        title="Expense Tracker",
        version=__version__,
        debug=settings.debug_mode,
    )
    app.state.settings = settings
    app.state.expense_flow = expense_flow
    app.state.report_flow = report_flow

    register_error_handlers(app)
    app.include_router(router, prefix=settings.api_prefix)
    return app
