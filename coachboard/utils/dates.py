"""
Calendar helpers shared by the analytics engine.

All instants handled by the engine are naive datetimes in UTC. Calendar dates
(membership start/end/renewal) are compared as midnight of that day.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Union

from dateutil.relativedelta import relativedelta

END_OF_DAY = time(23, 59, 59, 999000)

DateLike = Union[date, datetime]


def as_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def to_instant(value: DateLike) -> datetime:
    """Midnight of a calendar date, or the (naive UTC) datetime itself."""
    if isinstance(value, datetime):
        return as_naive_utc(value)
    return datetime.combine(value, time.min)


def start_of_day(value: DateLike) -> datetime:
    return datetime.combine(to_instant(value).date(), time.min)


def end_of_day(value: DateLike) -> datetime:
    return datetime.combine(to_instant(value).date(), END_OF_DAY)


def start_of_month(value: DateLike) -> datetime:
    d = to_instant(value)
    return datetime(d.year, d.month, 1)


def end_of_month(value: DateLike) -> datetime:
    first_of_next = start_of_month(value) + relativedelta(months=1)
    return end_of_day(first_of_next - timedelta(days=1))


def add_months(value: DateLike, months: int) -> datetime:
    return to_instant(value) + relativedelta(months=months)


def months_between(later: DateLike, earlier: DateLike) -> int:
    """
    Whole calendar months from ``earlier`` to ``later``.

    Mar 31 -> Apr 30 is 0 months; Jan 15 -> Mar 15 is 2 months. Negative when
    ``earlier`` is after ``later``.
    """
    delta = relativedelta(to_instant(later), to_instant(earlier))
    return delta.years * 12 + delta.months


def whole_days_between(later: DateLike, earlier: DateLike) -> int:
    """Calendar-day difference, ignoring the time of day."""
    return (to_instant(later).date() - to_instant(earlier).date()).days
