import calendar
import datetime as dt
import logging
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping, Optional, Tuple, Type, TypeVar

from pydantic import ValidationError as PydanticValidationError, field_validator
from sqlmodel import SQLModel, Field

from ..core.errors import ValidationError


logger = logging.getLogger(__name__)

_MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

CENTS = Decimal("0.01")
# NUMERIC(10, 2) holds at most 99,999,999.99
MAX_AMOUNT = Decimal("100000000")
# Largest id a 64-bit integer column can hold
MAX_ID = 2**63 - 1

INVALID_EXPENSE = "Invalid expense data."
INVALID_MONTH = "Invalid month format (expected YYYY-MM)"
INVALID_RANGE = "Invalid date range (expected YYYY-MM-DD)"

CommandT = TypeVar("CommandT", bound=SQLModel)


def to_cents(amount: Decimal) -> Decimal:
    """Round to the stored precision; an amount that rounds to zero is not positive."""
    rounded = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    if rounded <= 0:
        raise ValueError("amount must be at least 0.01")
    return rounded


# ─────────────────────────────
#   COMMANDS (validated input)
# ─────────────────────────────

class AddExpense(SQLModel):
    amount: Decimal = Field(gt=0, lt=MAX_AMOUNT)
    category: str = Field(min_length=1, max_length=50)
    description: str = Field(default="", max_length=255)
    date: dt.date

    @field_validator("amount")
    @classmethod
    def round_amount(cls, value: Decimal) -> Decimal:
        return to_cents(value)


class EditExpense(SQLModel):
    id: int = Field(ge=1, le=MAX_ID)
    amount: Decimal = Field(gt=0, lt=MAX_AMOUNT)
    category: str = Field(min_length=1, max_length=50)
    date: dt.date

    @field_validator("amount")
    @classmethod
    def round_amount(cls, value: Decimal) -> Decimal:
        return to_cents(value)


class DeleteExpense(SQLModel):
    id: int = Field(ge=1, le=MAX_ID)


class MonthFilter(SQLModel):
    """A calendar month as an inclusive [start, end] date range."""

    month: str
    start: dt.date
    end: dt.date
    category: Optional[str] = None


class ExportFilter(SQLModel):
    date_from: Optional[dt.date] = None
    date_to: Optional[dt.date] = None
    category: Optional[str] = None

    @property
    def date_range(self) -> Optional[Tuple[dt.date, dt.date]]:
        # A half-open range is ignored
        if self.date_from is None or self.date_to is None:
            return None
        return self.date_from, self.date_to


# ─────────────────────────────
#   RESPONSES
# ─────────────────────────────

class CategoryTotal(SQLModel):
    category: str
    total: float


class TotalRead(SQLModel):
    total: float


class MessageRead(SQLModel):
    message: Optional[str] = None


# ─────────────────────────────
#   PARSING
# ─────────────────────────────

def _clean(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def parse_command(
    model: Type[CommandT],
    data: Mapping[str, Any],
    required: Iterable[str] = (),
    missing_message: str = INVALID_EXPENSE,
    invalid_message: str = INVALID_EXPENSE,
) -> CommandT:
    """
    Turn loosely-typed form/query input into a validated command.

    - Blank strings count as missing.
    - Keys the model does not declare (e.g. a forged user_id) are dropped.
    """
    values = {
        name: _clean(data.get(name))
        for name in model.model_fields
    }
    if any(values.get(name) is None for name in required):
        raise ValidationError(missing_message)

    try:
        return model.model_validate({k: v for k, v in values.items() if v is not None})
    except PydanticValidationError as e:
        logger.debug("Rejected %s input: %s", model.__name__, e.errors())
        raise ValidationError(invalid_message) from e


def parse_month_filter(month: Optional[str], category: Optional[str] = None) -> MonthFilter:
    month = _clean(month)
    if month is None or not _MONTH_RE.match(month):
        raise ValidationError(INVALID_MONTH)

    year, month_number = (int(part) for part in month.split("-"))
    try:
        start = dt.date(year, month_number, 1)
    except ValueError as e:
        # Year 0000 matches the pattern but is not a calendar year
        raise ValidationError(INVALID_MONTH) from e
    last_day = calendar.monthrange(year, month_number)[1]
    return MonthFilter(
        month=month,
        start=start,
        end=start.replace(day=last_day),
        category=_clean(category),
    )


def parse_export_filter(
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    category: Optional[str] = None,
) -> ExportFilter:
    """Dates are only read when both ends are given; a half-open range is ignored."""
    if _clean(date_from) is None or _clean(date_to) is None:
        date_from = date_to = None
    return parse_command(
        ExportFilter,
        {"date_from": date_from, "date_to": date_to, "category": category},
        invalid_message=INVALID_RANGE,
    )
