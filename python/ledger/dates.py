"""
Calendar arithmetic for ledger periods.

Month advancement clamps to the last valid day of the target month, so the
operation is lossy (Jan 31 + 1 month = Feb 28/29, and back again is Jan 28/29).
"""

import calendar
import re
from datetime import date

PERIOD_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


def period_label(value: date) -> str:
    """Return the zero-padded YEAR-MONTH label of a date."""
    return f"{value.year:04d}-{value.month:02d}"


def parse_period(label: str) -> tuple[int, int]:
    """Split a YEAR-MONTH label into (year, month).

    Raises:
        ValueError: If the label is not a valid period
    """
    match = PERIOD_PATTERN.match(label or "")
    if not match:
        raise ValueError(f"Invalid period: {label}")

    year, month = int(match.group(1)), int(match.group(2))
    if year < 1 or not 1 <= month <= 12:
        raise ValueError(f"Invalid period: {label}")

    return year, month


def add_months_to_period(label: str, offset: int) -> str:
    """Advance a YEAR-MONTH label by a number of months."""
    year, month = parse_period(label)
    month_index = year * 12 + (month - 1) + offset
    next_year, next_month = divmod(month_index, 12)
    return f"{next_year:04d}-{next_month + 1:02d}"


def add_months(value: date, offset: int) -> date:
    """Advance a date by a number of months, clamping the day to month end."""
    month_index = value.year * 12 + (value.month - 1) + offset
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return value.replace(year=year, month=month, day=min(value.day, last_day))


def month_difference(start: date, end: date) -> int:
    """Whole calendar months from start to end (day of month ignored)."""
    return (end.year - start.year) * 12 + (end.month - start.month)
