"""
Calendar month helpers.

Every date inside a month maps to the same key: the first day of that month.
"""

import calendar
import re
from datetime import date, datetime

from core.errors import ValidationError

MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})(?:-(\d{2}))?$")
INVALID_MONTH_MESSAGE = "Invalid month format. Expected YYYY-MM or YYYY-MM-DD"


def parse_month(value: str | date) -> date:
    """
    Normalize a month representation to the first day of that month.

    Accepts "YYYY-MM", "YYYY-MM-DD", date or datetime.

    Raises:
        ValidationError: If the value is not a valid month or date
    """
    if isinstance(value, datetime):
        return value.date().replace(day=1)
    if isinstance(value, date):
        return value.replace(day=1)

    match = MONTH_PATTERN.match(str(value).strip()) if value else None
    if not match:
        raise ValidationError(INVALID_MONTH_MESSAGE, details=[f"Received: {value!r}"])

    year, month, day = match.groups()
    try:
        parsed = date(int(year), int(month), int(day) if day else 1)
    except ValueError as e:
        raise ValidationError(INVALID_MONTH_MESSAGE, details=[str(e)]) from e
    return parsed.replace(day=1)


def month_key(value: str | date) -> str:
    """Format a month as YYYY-MM."""
    return parse_month(value).strftime("%Y-%m")


def month_bounds(value: str | date) -> tuple[date, date]:
    """Return the half-open range [month start, next month start)."""
    start = parse_month(value)
    if start.month == 12:
        return start, date(start.year + 1, 1, 1)
    return start, date(start.year, start.month + 1, 1)


def last_day_of_month(value: str | date) -> date:
    start = parse_month(value)
    _, days = calendar.monthrange(start.year, start.month)
    return start.replace(day=days)


def last_day_of_current_month(today: date | None = None) -> date:
    """Last calendar day of the month containing today."""
    return last_day_of_month(today or date.today())


def month_label(value: str | date) -> str:
    """Format a month for display, e.g. 'September 2025'."""
    return parse_month(value).strftime("%B %Y")
