from __future__ import annotations

from datetime import date, timedelta
from typing import TYPE_CHECKING

from leave_engine.exceptions import PolicyViolation, ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterator

_HALF_DAY = 0.5
# Average month length used for tenure; tenure is always floored to whole months.
_DAYS_PER_MONTH = 30.44


def iter_weekdays(start_date: date, end_date: date) -> Iterator[date]:
    """Yield every Monday-to-Friday date in the inclusive range."""
    current = start_date
    one_day = timedelta(days=1)
    while current <= end_date:
        if current.weekday() < 5:
            yield current
        current += one_day


def count_working_days(
    start_date: date,
    end_date: date,
    half_day_start: bool = False,
    half_day_end: bool = False,
) -> float:
    """Count leave days between two dates, inclusive, excluding weekends.

    Each half-day flag takes 0.5 off the total, but only when the range
    contains at least one working day.
    """
    if end_date < start_date:
        raise ValidationError("end_date must not be before start_date")

    days = float(sum(1 for _ in iter_weekdays(start_date, end_date)))
    if days > 0 and half_day_start:
        days -= _HALF_DAY
    if days > 0 and half_day_end:
        days -= _HALF_DAY
    return days


def calculate_leave_days(
    start_date: date,
    end_date: date,
    half_day_start: bool = False,
    half_day_end: bool = False,
) -> float:
    """Working days a request consumes. Rejects ranges that consume nothing."""
    days = count_working_days(start_date, end_date, half_day_start, half_day_end)
    if days <= 0:
        raise PolicyViolation("Request covers no working days after excluding weekends")
    return days


def tenure_months(join_date: date | None, as_of: date) -> int:
    """Whole months of service at as_of. Unknown or future join dates count as zero."""
    if join_date is None or join_date > as_of:
        return 0
    return int((as_of - join_date).days // _DAYS_PER_MONTH)
