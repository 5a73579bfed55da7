"""Date manipulation utilities"""

import calendar
from datetime import date


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def shift_month(year: int, month: int, months: int) -> tuple[int, int]:
    """Move a (year, month) pair by a number of months"""
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def clamped_date(year: int, month: int, day: int) -> date:
    """Build a date, clamping the day to the last valid day of the month"""
    return date(year, month, min(day, last_day_of_month(year, month)))


def add_months(from_date: date, months: int, day: int | None = None) -> date:
    """
    Add calendar months to a date.

    The day of month defaults to ``from_date.day`` and is clamped to the end
    of the target month (Jan 31 + 1 month = Feb 28/29). Always compute from a
    fixed anchor: chaining clamped results drifts (Feb 28 + 1 month = Mar 28).
    """
    year, month = shift_month(from_date.year, from_date.month, months)
    return clamped_date(year, month, day if day is not None else from_date.day)


def months_between(start: date, end: date) -> int:
    """Whole calendar-month difference between two dates, ignoring days"""
    return (end.year - start.year) * 12 + (end.month - start.month)
