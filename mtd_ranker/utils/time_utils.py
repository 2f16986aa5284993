"""
Date-window helpers for return calculations.

Key concepts:
  - Return window: a ``(start, end)`` pair of dates, both inclusive.
  - Month window: starts on a given day and ends the day before the same
    day of the following month (``2024-02-01`` → ``2024-02-29``).
  - Default window: the previous calendar month relative to "today".
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import NamedTuple, Optional


class DateWindow(NamedTuple):
    """Inclusive date range used for one refresh."""

    start: date
    end: date


def add_months(d: date, months: int) -> date:
    """Shift ``d`` by ``months`` calendar months, clamping the day.

    ``add_months(date(2024, 1, 31), 1)`` → ``date(2024, 2, 29)``.
    """
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def month_window(year: int, month: int, day: int = 1) -> DateWindow:
    """Return the one-month window starting at ``year-month-day``.

    ``day`` is clamped to the last day of the month, so ``day=31`` in April
    starts on April 30.

    Args:
        year:  Calendar year (> 0).
        month: Month number 1–12.
        day:   Day of month 1–31.

    Returns:
        ``DateWindow(start, end)`` where ``end`` is one month after ``start``
        minus one day.

    Raises:
        ValueError: If ``month`` or ``day`` are outside their ranges, or the
            window would end after ``date.max`` (December 9999).
    """
    if not 1 <= month <= 12:
        raise ValueError(f"month must be in 1..12, got {month}.")
    if not 1 <= day <= 31:
        raise ValueError(f"day must be in 1..31, got {day}.")
    last_day = calendar.monthrange(year, month)[1]
    start = date(year, month, min(day, last_day))
    end = add_months(start, 1) - timedelta(days=1)
    return DateWindow(start, end)


def previous_month_window(today: Optional[date] = None) -> DateWindow:
    """Return the full previous calendar month relative to ``today``."""
    today = today or utcnow().date()
    first_of_previous = add_months(today.replace(day=1), -1)
    return month_window(first_of_previous.year, first_of_previous.month, 1)


def resolve_window(
    year: Optional[int] = None,
    month: Optional[int] = None,
    day: Optional[int] = None,
    today: Optional[date] = None,
) -> DateWindow:
    """Derive the refresh window from optional calendar parts.

    Year and month must both be present to select an explicit window;
    otherwise the previous calendar month is used. A missing day means the
    first of the month.
    """
    if not year or not month:
        return previous_month_window(today)
    return month_window(year, month, day or 1)


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)
