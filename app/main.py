"""
HTTP Entry Point for Expense Tracker

Serves the expense API:

    uvicorn app.main:app --reload

or simply `python app/main.py`.

Configuration comes from environment variables / `.env`
(see expense_tracker.config.settings). With the default `memory`
backend nothing needs configuring; data lives only as long as the
process.
"""

import structlog
import uvicorn

from expense_tracker.api import create_app
from expense_tracker.config import get_settings, validate_all_settings


logger = structlog.get_logger("expense_tracker.main")


def build_app():
    """Check configuration, then build the API for the configured backend."""
    checks = validate_all_settings()
    failed = {name: ok for name, ok in checks.items() if ok is False}
    if failed:
        errors = {name: checks.get(f"{name}_error") for name in failed}
        logger.error("settings_invalid", errors=errors)
        raise RuntimeError(f"Invalid configuration: {errors}")

    settings = get_settings().app
    logger.info(
        "starting",
        environment=settings.app_environment,
        storage_backend=settings.storage_backend.value,
        api_prefix=settings.api_prefix,
    )
    return create_app(settings=settings)


app = build_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
