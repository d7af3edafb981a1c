"""
Interval Generator: buckets a date range for trend charts.

Granularity follows the whole-day span of the range:

- span <= 14 days: one bucket per calendar day
- 14 < span <= 90: 7-day buckets anchored at the range start (not calendar weeks)
- span > 90: calendar months from the month of ``from`` to the month of ``to``

The primary range and any comparison range are bucketed independently with the
same rule, so the two can land on different granularities.
"""

from datetime import datetime, timedelta

import structlog

from coachboard.models.analytics import Bucket, DateRange, IntervalSet
from coachboard.models.enums import Granularity
from coachboard.utils.dates import (
    add_months,
    end_of_day,
    end_of_month,
    start_of_day,
    start_of_month,
    whole_days_between,
)

logger = structlog.get_logger()

DAILY_MAX_SPAN_DAYS = 14
WEEKLY_MAX_SPAN_DAYS = 90
WEEK_LENGTH_DAYS = 7


def choose_granularity(span_days: int) -> Granularity:
    if span_days <= DAILY_MAX_SPAN_DAYS:
        return Granularity.DAY
    if span_days <= WEEKLY_MAX_SPAN_DAYS:
        return Granularity.WEEK
    return Granularity.MONTH


def bucket_label(start: datetime, granularity: Granularity) -> str:
    """``MMM d`` for day/week buckets, ``MMM yyyy`` for month buckets."""
    if granularity == Granularity.MONTH:
        return f"{start:%b %Y}"
    return f"{start:%b} {start.day}"


def _daily(date_range: DateRange) -> list[Bucket]:
    buckets = []
    day = start_of_day(date_range.from_)
    last = start_of_day(date_range.to)
    while day <= last:
        buckets.append(
            Bucket(start=day, end=end_of_day(day), label=bucket_label(day, Granularity.DAY))
        )
        day += timedelta(days=1)
    return buckets


def _weekly(date_range: DateRange) -> list[Bucket]:
    buckets = []
    anchor = start_of_day(date_range.from_)
    last = start_of_day(date_range.to)
    while anchor <= last:
        buckets.append(
            Bucket(
                start=anchor,
                end=end_of_day(anchor + timedelta(days=WEEK_LENGTH_DAYS - 1)),
                label=bucket_label(anchor, Granularity.WEEK),
            )
        )
        anchor += timedelta(days=WEEK_LENGTH_DAYS)
    return buckets


def _monthly(date_range: DateRange) -> list[Bucket]:
    buckets = []
    month = start_of_month(date_range.from_)
    last = start_of_month(date_range.to)
    while month <= last:
        buckets.append(
            Bucket(
                start=month,
                end=end_of_month(month),
                label=bucket_label(month, Granularity.MONTH),
            )
        )
        month = add_months(month, 1)
    return buckets


_BUILDERS = {
    Granularity.DAY: _daily,
    Granularity.WEEK: _weekly,
    Granularity.MONTH: _monthly,
}


def generate_intervals(date_range: DateRange) -> IntervalSet:
    """
    Bucket ``date_range`` for charting.

    Args:
        date_range: Range to cover

    Returns:
        IntervalSet with ordered, contiguous buckets and the chosen granularity
    """
    span = whole_days_between(date_range.to, date_range.from_)
    granularity = choose_granularity(span)
    buckets = _BUILDERS[granularity](date_range)

    logger.debug(
        "intervals_generated",
        span_days=span,
        granularity=granularity.value,
        bucket_count=len(buckets),
    )
    return IntervalSet(granularity=granularity, buckets=buckets)


def trailing_months(now: datetime, months: int) -> IntervalSet:
    """The last ``months`` calendar months ending with the month of ``now``."""
    first = add_months(start_of_month(now), -(months - 1))
    return IntervalSet(
        granularity=Granularity.MONTH,
        buckets=_monthly(DateRange(from_=first, to=now)),
    )
