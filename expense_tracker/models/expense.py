"""
Core Data Models for Expense Tracker

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and the HTTP envelope
4. Keep every record tied to exactly one owner

DESIGN DECISION: Field names are snake_case in Python and camelCase on the
wire (alias generator). Amounts are Decimal internally and JSON numbers
externally.
"""

import calendar
from datetime import datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


# Decimal in Python, number in JSON
JsonDecimal = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]

CENTS = Decimal("0.01")
TENTHS = Decimal("0.1")
ALL_CATEGORIES = "all"


def parse_timestamp(value: str) -> tuple[datetime, bool]:
    """
    Parse an ISO 8601 date or date-time string.

    Returns (naive UTC datetime, has_time_part).
    Offsets (including a trailing Z) are converted to UTC.

    Raises:
        ValueError: If the string is not a recognised format
    """
    text = value.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"

    has_time = "T" in text or " " in text
    try:
        if has_time:
            parsed = datetime.fromisoformat(text)
        else:
            parsed = datetime.strptime(text, "%Y-%m-%d")
    except ValueError:
        raise ValueError(f"Invalid date format: {value!r}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed, has_time


def _coerce_timestamp(value):
    """
    Accept ISO 8601 strings and datetimes only, always as naive UTC.

    Numbers (epoch seconds) are rejected rather than handed to pydantic,
    which would produce an aware datetime.
    """
    if value is None:
        return value
    if isinstance(value, str):
        parsed, _ = parse_timestamp(value)
        return parsed
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    raise ValueError("Dates must be ISO 8601 strings")


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Supported expense categories.

    DESIGN DECISION: Using explicit categories rather than free text ensures
    consistent grouping in the analytics summary.
    """
    FOOD = "Food"
    TRANSPORTATION = "Transportation"
    ENTERTAINMENT = "Entertainment"
    SHOPPING = "Shopping"
    BILLS = "Bills"
    HEALTHCARE = "Healthcare"
    EDUCATION = "Education"
    TRAVEL = "Travel"
    OTHER = "Other"


class PaymentMethod(str, Enum):
    """How an expense was paid."""
    CASH = "Cash"
    CREDIT_CARD = "Credit Card"
    DEBIT_CARD = "Debit Card"
    BANK_TRANSFER = "Bank Transfer"
    DIGITAL_WALLET = "Digital Wallet"
    OTHER = "Other"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SortField(str, Enum):
    """
    Fields an expense list can be sorted by.

    Values are the wire names; `attribute` is the model attribute.
    """
    DATE = "date"
    AMOUNT = "amount"
    TITLE = "title"
    CATEGORY = "category"
    PAYMENT_METHOD = "paymentMethod"
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"

    @property
    def attribute(self) -> str:
        return {
            SortField.PAYMENT_METHOD: "payment_method",
            SortField.CREATED_AT: "created_at",
            SortField.UPDATED_AT: "updated_at",
        }.get(self, self.value)


class CamelModel(BaseModel):
    """Base for models exchanged over the API (camelCase aliases)."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# CORE EXPENSE MODEL
# =============================================================================

class Expense(CamelModel):
    """
    A stored expense record.

    `id` and `owner` never change after creation. Every query
    and aggregation is scoped by `owner`.
    """

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique expense ID"
    )
    owner: str = Field(
        ...,
        min_length=1,
        description="Owning user's identifier"
    )

    title: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Short title"
    )
    amount: JsonDecimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Amount, at most two fractional digits"
    )
    category: ExpenseCategory
    description: str = Field(
        default="",
        max_length=500,
    )
    date: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the expense happened (naive UTC)"
    )
    payment_method: PaymentMethod = PaymentMethod.CASH
    tags: list[str] = Field(default_factory=list)
    is_recurring: bool = False

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator('date', 'created_at', 'updated_at', mode='before')
    @classmethod
    def parse_timestamps(cls, v):
        return _coerce_timestamp(v)


class ExpenseCreate(CamelModel):
    """
    Validated payload for creating an expense.

    Optional fields fall back to the record defaults.
    """

    title: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    category: ExpenseCategory
    description: Optional[str] = Field(default=None, max_length=500)
    date: Optional[datetime] = None
    payment_method: Optional[PaymentMethod] = None
    tags: Optional[list[str]] = None
    is_recurring: bool = False

    @field_validator('date', mode='before')
    @classmethod
    def parse_date(cls, v):
        return _coerce_timestamp(v)

    def to_expense(self, owner: str) -> Expense:
        """Build the record for `owner`, stamping creation times."""
        now = datetime.utcnow()
        return Expense(
            owner=owner,
            title=self.title,
            amount=self.amount,
            category=self.category,
            description=self.description or "",
            date=self.date or now,
            payment_method=self.payment_method or PaymentMethod.CASH,
            tags=self.tags or [],
            is_recurring=self.is_recurring,
            created_at=now,
            updated_at=now,
        )


class ExpenseUpdate(CamelModel):
    """
    Partial update payload.

    Only fields present in the request are applied. Required record
    fields may be omitted but not nulled.
    """

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount: Optional[Decimal] = Field(default=None, gt=0, decimal_places=2)
    category: Optional[ExpenseCategory] = None
    description: Optional[str] = Field(default=None, max_length=500)
    date: Optional[datetime] = None
    payment_method: Optional[PaymentMethod] = None
    tags: Optional[list[str]] = None
    is_recurring: Optional[bool] = None

    @field_validator('date', mode='before')
    @classmethod
    def parse_date(cls, v):
        return _coerce_timestamp(v)

    @model_validator(mode='after')
    def reject_nulled_required_fields(self) -> 'ExpenseUpdate':
        """A supplied null cannot clear a required field."""
        for name in ("title", "amount", "category", "date", "payment_method", "is_recurring"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self

    def apply_to(self, expense: Expense) -> Expense:
        """Return a copy of `expense` with the supplied fields applied."""
        changes = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            if name == "description" and value is None:
                value = ""
            if name == "tags" and value is None:
                value = []
            changes[name] = value
        changes["updated_at"] = datetime.utcnow()
        return Expense.model_validate(
            {**expense.model_dump(), **changes}
        )


class UserLedger(CamelModel):
    """
    Per-owner running total.

    `total_expenses` must always equal the sum of the owner's
    existing expense amounts.
    """
    owner: str
    total_expenses: JsonDecimal = Decimal("0")
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class LedgerReconciliation(CamelModel):
    """Outcome of comparing the stored ledger with the record sum."""
    owner: str
    ledger_total: JsonDecimal
    record_total: JsonDecimal
    drift: JsonDecimal
    corrected: bool


# =============================================================================
# QUERY MODELS
# =============================================================================

class ExpenseQuery(CamelModel):
    """
    Options for one page of an owner's expenses.

    The date range only applies when both bounds are present.
    `category=None` means every category.
    """

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)
    category: Optional[ExpenseCategory] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    sort_by: SortField = SortField.DATE
    sort_order: SortOrder = SortOrder.DESC

    @field_validator('category', mode='before')
    @classmethod
    def all_means_no_filter(cls, v):
        if v == ALL_CATEGORIES:
            return None
        return v

    @property
    def has_date_range(self) -> bool:
        return self.start_date is not None and self.end_date is not None

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class ExpenseFilter(BaseModel):
    """
    Store-level query produced by the query engine.

    Bounds are inclusive. `limit=None` returns every match.
    """

    owner: str = Field(..., min_length=1)
    category: Optional[ExpenseCategory] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    sort_field: SortField = SortField.DATE
    descending: bool = True
    skip: int = Field(default=0, ge=0)
    limit: Optional[int] = Field(default=None, ge=1)

    def matches(self, expense: Expense) -> bool:
        if expense.owner != self.owner:
            return False
        if self.category is not None and expense.category != self.category:
            return False
        if self.date_from is not None and expense.date < self.date_from:
            return False
        if self.date_to is not None and expense.date > self.date_to:
            return False
        return True

    def apply(self, expenses: list[Expense]) -> list[Expense]:
        """Filter, sort and slice an in-memory collection."""
        matching = [e for e in expenses if self.matches(e)]
        attribute = self.sort_field.attribute
        matching.sort(key=lambda e: getattr(e, attribute), reverse=self.descending)
        if self.limit is None:
            return matching[self.skip:]
        return matching[self.skip:self.skip + self.limit]


class ExpensePage(CamelModel):
    """One page of results plus counts across all pages."""
    expenses: list[Expense] = Field(default_factory=list)
    total_pages: int = Field(ge=0)
    current_page: int = Field(ge=1)
    total_expenses: int = Field(ge=0)


# =============================================================================
# ANALYTICS MODELS
# =============================================================================

class ReportWindow(CamelModel):
    """
    A reporting period: a whole year, or one month of it.

    Month is 1-indexed. Both ends are inclusive.
    """

    year: int = Field(..., ge=1, le=9999)
    month: Optional[int] = Field(default=None, ge=1, le=12)

    @property
    def start(self) -> datetime:
        return datetime(self.year, self.month or 1, 1)

    @property
    def end(self) -> datetime:
        month = self.month or 12
        last_day = calendar.monthrange(self.year, month)[1]
        return datetime.combine(
            datetime(self.year, month, last_day).date(), time.max
        )

    @property
    def period(self) -> str:
        if self.month:
            return f"{self.year}-{self.month}"
        return str(self.year)


def category_percentage(
    category_total: Union[Decimal, int],
    grand_total: Union[Decimal, int],
) -> Decimal:
    """Share of the grand total, one decimal place; zero when nothing was spent."""
    if not grand_total:
        return Decimal("0.0")
    share = Decimal(category_total) / Decimal(grand_total) * 100
    return share.quantize(TENTHS, rounding=ROUND_HALF_UP)


class CategorySummary(CamelModel):
    """Aggregates for one category inside a report window."""
    category: ExpenseCategory
    total_amount: JsonDecimal
    count: int = Field(ge=1)
    avg_amount: JsonDecimal
    percentage: JsonDecimal = Decimal("0.0")


class AnalyticsSummary(CamelModel):
    """Category breakdown and grand total for a report window."""
    category_breakdown: list[CategorySummary] = Field(default_factory=list)
    total_amount: JsonDecimal = Decimal("0")
    total_count: int = Field(default=0, ge=0)
    period: str


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(CamelModel):
    """A single problem found in a request."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'invalid_choice')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None
