"""
Request Validation

DESIGN DECISION: Raw request parameters are turned into explicit,
typed option objects before anything reaches storage.

- List options → ExpenseQuery
- Summary options → ReportWindow
- Create/update bodies → pydantic errors converted to ValidationIssue

IMPORTANT: Validation NEVER silently fixes issues. Every problem found
is reported, and the operation is not attempted.
"""

from collections.abc import Mapping
from datetime import date, datetime
from typing import Optional

from pydantic import ValidationError

from expense_tracker.config import AppSettings, get_settings
from expense_tracker.models.expense import (
    ALL_CATEGORIES,
    ExpenseCategory,
    ExpenseQuery,
    ReportWindow,
    SortField,
    SortOrder,
    ValidationIssue,
    parse_timestamp,
)


class ExpenseValidationError(Exception):
    """Request failed validation; carries every issue found."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(issue.message for issue in issues))

    def to_dicts(self) -> list[dict]:
        return [issue.model_dump(by_alias=True, exclude_none=True) for issue in self.issues]


def issues_from_pydantic(error: ValidationError) -> list[ValidationIssue]:
    """Flatten a pydantic ValidationError into ValidationIssue items."""
    issues = []
    for detail in error.errors():
        location = [str(part) for part in detail.get("loc", ()) if part != "body"]
        issues.append(ValidationIssue(
            field=".".join(location) or "body",
            issue_type=detail.get("type", "invalid"),
            message=detail.get("msg", "Invalid value"),
        ))
    return issues


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class ExpenseValidator:
    """
    Parses query-string parameters for the list and summary operations.

    Every parameter is checked; issues are collected and raised together.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def _parse_positive_int(
        self,
        params: Mapping,
        name: str,
        default: int,
        issues: list[ValidationIssue],
        maximum: Optional[int] = None,
    ) -> int:
        raw = _blank_to_none(params.get(name))
        if raw is None:
            return default
        try:
            value = int(raw)
        except ValueError:
            issues.append(ValidationIssue(
                field=name,
                issue_type="invalid_format",
                message=f"{name} must be an integer",
            ))
            return default
        if value < 1:
            issues.append(ValidationIssue(
                field=name,
                issue_type="out_of_range",
                message=f"{name} must be at least 1",
            ))
        elif maximum is not None and value > maximum:
            issues.append(ValidationIssue(
                field=name,
                issue_type="out_of_range",
                message=f"{name} cannot exceed {maximum}",
            ))
        return value

    def _parse_choice(self, params: Mapping, name: str, enum_cls, default, issues):
        raw = _blank_to_none(params.get(name))
        if raw is None:
            return default
        try:
            return enum_cls(raw)
        except ValueError:
            allowed = ", ".join(member.value for member in enum_cls)
            issues.append(ValidationIssue(
                field=name,
                issue_type="invalid_choice",
                message=f"{raw} is not a valid {name}",
                suggested_fix=f"Use one of: {allowed}",
            ))
            return default

    def _parse_date(
        self,
        params: Mapping,
        name: str,
        issues: list[ValidationIssue],
        end_of_day: bool = False,
    ) -> Optional[datetime]:
        raw = _blank_to_none(params.get(name))
        if raw is None:
            return None
        try:
            parsed, has_time = parse_timestamp(raw)
        except ValueError:
            issues.append(ValidationIssue(
                field=name,
                issue_type="invalid_format",
                message=f"Invalid date format for {name}: {raw}",
                suggested_fix="Use YYYY-MM-DD or an ISO 8601 date-time",
            ))
            return None
        if end_of_day and not has_time:
            # A bare end date covers that whole day
            parsed = parsed.replace(hour=23, minute=59, second=59, microsecond=999999)
        return parsed

    def parse_expense_query(self, params: Mapping) -> ExpenseQuery:
        """
        Build an ExpenseQuery from raw list parameters.

        Raises:
            ExpenseValidationError: If any parameter is invalid
        """
        issues: list[ValidationIssue] = []

        page = self._parse_positive_int(params, "page", 1, issues)
        limit = self._parse_positive_int(
            params, "limit", self._settings.default_page_size, issues,
            maximum=self._settings.max_page_size,
        )

        category = None
        raw_category = _blank_to_none(params.get("category"))
        if raw_category is not None and raw_category != ALL_CATEGORIES:
            category = self._parse_choice(params, "category", ExpenseCategory, None, issues)

        sort_by = self._parse_choice(params, "sortBy", SortField, SortField.DATE, issues)
        sort_order = self._parse_choice(params, "sortOrder", SortOrder, SortOrder.DESC, issues)

        start_date = self._parse_date(params, "startDate", issues)
        end_date = self._parse_date(params, "endDate", issues, end_of_day=True)

        if issues:
            raise ExpenseValidationError(issues)

        return ExpenseQuery(
            page=page,
            limit=limit,
            category=category,
            start_date=start_date,
            end_date=end_date,
            sort_by=sort_by,
            sort_order=sort_order,
        )

    def parse_report_window(
        self,
        params: Mapping,
        today: Optional[date] = None,
    ) -> ReportWindow:
        """
        Build a ReportWindow from `year` and optional `month`.

        `year` defaults to the current year.

        Raises:
            ExpenseValidationError: If year or month is invalid
        """
        issues: list[ValidationIssue] = []
        today = today or date.today()

        year = self._parse_positive_int(params, "year", today.year, issues, maximum=9999)
        month = None
        if _blank_to_none(params.get("month")) is not None:
            month = self._parse_positive_int(params, "month", 1, issues, maximum=12)

        if issues:
            raise ExpenseValidationError(issues)

        return ReportWindow(year=year, month=month)
