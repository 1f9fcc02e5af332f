"""Single place where raw expense input becomes a storable expense.

Every entry point (manual form, parsed AI candidate, offline replay, edit)
goes through :func:`normalize_expense_input`, so defaults are identical
everywhere.
"""

from __future__ import annotations

import calendar
import math
import re
from datetime import UTC, date, datetime, time

from wallet.core.errors import ValidationError
from wallet.schemas.expense import ExpenseInput, NormalizedExpense

DEFAULT_QUANTITY = 1.0
DEFAULT_UNIT = "unit"
YEAR_MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


def strip_text(value: str | None) -> str:
    if value is None:
        return ""
    return str(value).strip()


def clean_text(value: str | None) -> str:
    return " ".join(strip_text(value).split())


def round_money(value: float) -> float:
    return round(value, 2)


def year_month_for(value: datetime | date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def parse_year_month(value: str) -> tuple[int, int]:
    match = YEAR_MONTH_PATTERN.match(value or "")
    if not match:
        raise ValidationError(f"Invalid year-month '{value}', expected YYYY-MM.")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid month in '{value}'.")
    return year, month


def days_in_month(year_month: str) -> int:
    year, month = parse_year_month(year_month)
    return calendar.monthrange(year, month)[1]


def _parse_number(value: float | str | None) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _normalize_date(value: datetime | date | None, now: datetime) -> datetime:
    if value is None:
        return now
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(UTC).replace(tzinfo=None)
        return value
    return datetime.combine(value, time())


def normalize_expense_input(payload: ExpenseInput, *, now: datetime) -> NormalizedExpense:
    # Categories are stored as typed; only surrounding whitespace goes.
    category = strip_text(payload.category)
    if not category:
        raise ValidationError("Category is required.")
    name = clean_text(payload.name)
    if not name:
        raise ValidationError("Name is required.")

    amount = _parse_number(payload.amount)
    if amount is None:
        raise ValidationError("Amount is required and must be a number.")
    if amount < 0:
        raise ValidationError("Amount must not be negative.")

    quantity = _parse_number(payload.quantity)
    if quantity is None or quantity <= 0:
        quantity = DEFAULT_QUANTITY

    expense_date = _normalize_date(payload.date, now)
    return NormalizedExpense(
        category=category,
        name=name,
        quantity=quantity,
        unit=clean_text(payload.unit) or DEFAULT_UNIT,
        amount=round_money(amount),
        description=(payload.description or "").strip(),
        date=expense_date,
        year_month=year_month_for(expense_date),
        day=expense_date.day,
    )
