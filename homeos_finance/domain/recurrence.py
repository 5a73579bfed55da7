"""Recurrence scheduling - turns a recurring definition into occurrence dates"""

from datetime import date, timedelta
from itertools import islice, takewhile
from typing import Iterator, List, Optional

from homeos_finance.domain.models import RecurringTransaction
from homeos_finance.utils.date_utils import clamped_date, last_day_of_month, months_between, shift_month


def occurrence_at(recurring: RecurringTransaction, index: int) -> date:
    """
    Date of the index-th step of the series (index 0 is the start period).

    Every occurrence is derived from the start date rather than from the
    previous occurrence, so month-end clamping never drifts:
    day 31 gives Jan 31, Feb 29, Mar 31, Apr 30.
    """
    frequency = recurring.frequency
    start = recurring.start_date

    if frequency.day_step:
        return start + timedelta(days=index * frequency.day_step)

    year, month = shift_month(start.year, start.month, index * frequency.month_step)
    if recurring.use_last_day:
        return date(year, month, last_day_of_month(year, month))
    return clamped_date(year, month, recurring.day_of_month)


def _first_candidate_index(recurring: RecurringTransaction, from_date: date) -> int:
    """Lowest series index that can land on or after from_date"""
    start = recurring.start_date
    if from_date <= start:
        return 0

    frequency = recurring.frequency
    if frequency.day_step:
        elapsed = (from_date - start).days
        return -(-elapsed // frequency.day_step)

    # One step back covers a day_of_month earlier than from_date's day
    return max(0, months_between(start, from_date) // frequency.month_step - 1)


def iter_occurrences(
    recurring: RecurringTransaction,
    from_date: date,
    bounded: bool = True,
) -> Iterator[date]:
    """
    Yield occurrences on or after from_date in ascending order.

    Occurrences before start_date are never emitted. With bounded=True the
    series stops at end_date; unbounded iteration is infinite.
    """
    lower = max(from_date, recurring.start_date)
    index = _first_candidate_index(recurring, lower)

    while True:
        occurrence = occurrence_at(recurring, index)
        index += 1
        if occurrence < lower:
            continue
        if bounded and recurring.end_date is not None and occurrence > recurring.end_date:
            return
        yield occurrence


def compute_occurrences(
    recurring: RecurringTransaction,
    window_start: date,
    window_end: date,
) -> List[date]:
    """Every occurrence within [window_start, window_end] (enumerate-range mode)"""
    if window_end < window_start:
        return []
    return list(takewhile(lambda d: d <= window_end, iter_occurrences(recurring, window_start)))


def cursor_of(recurring: RecurringTransaction) -> date:
    """Current generation cursor; a definition that never ran starts at its start date"""
    return recurring.next_occurrence or recurring.start_date


def next_due_occurrence(recurring: RecurringTransaction, as_of: date) -> Optional[date]:
    """
    Single next occurrence to generate, or None if nothing is due (advance-one mode).

    The occurrence is the first one at or after the cursor, provided it is
    not after as_of and not after end_date.
    """
    for occurrence in iter_occurrences(recurring, cursor_of(recurring)):
        return occurrence if occurrence <= as_of else None
    return None


def next_occurrence_after(recurring: RecurringTransaction, occurrence: date) -> date:
    """
    Cursor value after generating occurrence.

    Ignores end_date so the cursor keeps moving forward past the end of the
    series instead of stalling on the last occurrence.
    """
    return next(iter_occurrences(recurring, occurrence + timedelta(days=1), bounded=False))


def first_occurrence(recurring: RecurringTransaction) -> date:
    """Initial cursor for a new or explicitly edited definition"""
    return next(iter_occurrences(recurring, recurring.start_date, bounded=False))


def reseeded_cursor(recurring: RecurringTransaction, last_generated: Optional[date]) -> date:
    """
    Cursor for a definition whose schedule was edited.

    Restarts from the first occurrence of the edited series, but never at or
    before an occurrence that was already generated.
    """
    if last_generated is None:
        return first_occurrence(recurring)
    return next_occurrence_after(recurring, last_generated)


def preview_occurrences(recurring: RecurringTransaction, count: int = 12) -> List[date]:
    """Next count occurrences from the cursor, without generating anything"""
    return list(islice(iter_occurrences(recurring, cursor_of(recurring)), count))
