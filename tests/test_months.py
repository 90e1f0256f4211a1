"""Tests for calendar month helpers."""

from datetime import date, datetime

import pytest

from core.errors import ValidationError
from core.months import (
    INVALID_MONTH_MESSAGE,
    last_day_of_current_month,
    last_day_of_month,
    month_bounds,
    month_key,
    month_label,
    parse_month,
)


@pytest.mark.parametrize(
    "value",
    ["2025-09", "2025-09-01", "2025-09-17", "2025-09-30", date(2025, 9, 30), datetime(2025, 9, 5, 13, 0)],
)
def test_every_day_of_a_month_maps_to_the_first(value):
    assert parse_month(value) == date(2025, 9, 1)


@pytest.mark.parametrize("value", ["", "2025", "2025-13", "2025-9", "09-2025", "2025-02-30", None, "abc"])
def test_invalid_months_are_rejected(value):
    with pytest.raises(ValidationError) as exc_info:
        parse_month(value)
    assert exc_info.value.message == INVALID_MONTH_MESSAGE
    assert exc_info.value.code == "VALIDATION_ERROR"


def test_month_key():
    assert month_key("2025-09-15") == "2025-09"
    assert month_key(date(2024, 1, 31)) == "2024-01"


def test_month_bounds_are_half_open():
    assert month_bounds("2025-09") == (date(2025, 9, 1), date(2025, 10, 1))


def test_month_bounds_cross_year():
    assert month_bounds("2025-12") == (date(2025, 12, 1), date(2026, 1, 1))


def test_last_day_of_month_handles_leap_years():
    assert last_day_of_month("2024-02") == date(2024, 2, 29)
    assert last_day_of_month("2025-02") == date(2025, 2, 28)
    assert last_day_of_month("2025-09") == date(2025, 9, 30)


def test_last_day_of_current_month_uses_today():
    assert last_day_of_current_month(date(2025, 10, 3)) == date(2025, 10, 31)


def test_month_label():
    assert month_label("2025-09") == "September 2025"
