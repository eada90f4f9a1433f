"""
Response envelope and error mapping.

Every response is {success, message?, data?, errors?}.

Error kinds map to status codes:
- validation → 400, nothing attempted
- not found (absent or another owner's) → 404
- storage failure → 500 with a generic message; details stay in the logs
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from expense_tracker.queries import ExpenseNotFoundError
from expense_tracker.services.storage import StorageError
from expense_tracker.validation import ExpenseValidationError, issues_from_pydantic


logger = structlog.get_logger("expense_tracker.api")


class ApiResponse(BaseModel):
    """The envelope every endpoint answers with."""
    success: bool
    message: Optional[str] = None
    data: Optional[Any] = None
    errors: Optional[list[dict]] = None


def envelope(
    success: bool = True,
    message: Optional[str] = None,
    data: Optional[Any] = None,
    errors: Optional[list[dict]] = None,
) -> dict:
    return ApiResponse(
        success=success, message=message, data=data, errors=errors
    ).model_dump(exclude_none=True)


class ApiError(Exception):
    """An error with a fixed status code and public message."""

    def __init__(
        self,
        status_code: int,
        message: str,
        errors: Optional[list[dict]] = None,
    ):
        self.status_code = status_code
        self.message = message
        self.errors = errors
        super().__init__(message)


@asynccontextmanager
async def storage_failure(message: str):
    """
    Turn storage failures inside the block into a 500 with `message`.

    Not-found errors pass through untouched.
    """
    try:
        yield
    except ExpenseNotFoundError:
        raise
    except StorageError as e:
        logger.error("request_storage_failed", message=message, error=str(e))
        raise ApiError(500, message) from e


def _error_response(status_code: int, message: str, errors=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=envelope(success=False, message=message, errors=errors),
    )


async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    return _error_response(exc.status_code, exc.message, exc.errors)


async def handle_validation_error(request: Request, exc: ExpenseValidationError) -> JSONResponse:
    return _error_response(400, "Validation failed", exc.to_dicts())


async def handle_request_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    issues = issues_from_pydantic(exc)
    return _error_response(
        400,
        "Validation failed",
        [issue.model_dump(by_alias=True, exclude_none=True) for issue in issues],
    )


async def handle_not_found(request: Request, exc: ExpenseNotFoundError) -> JSONResponse:
    return _error_response(404, "Expense not found")


async def handle_storage_error(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("unhandled_storage_error", path=request.url.path, error=str(exc))
    return _error_response(500, "Server error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, handle_api_error)
    app.add_exception_handler(ExpenseValidationError, handle_validation_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(ExpenseNotFoundError, handle_not_found)
    app.add_exception_handler(StorageError, handle_storage_error)
