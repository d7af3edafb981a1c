"""
Comparison Engine: the same aggregations over a second window.

Every date predicate is re-bound to the comparison window and the results are
paired with the primary window's. Percent deltas are omitted (None) when the
previous value is 0; they are never reported as 0%, infinity or NaN.

Each window is bucketed independently, so a comparison window with a different
span may use a different granularity. Series are paired by bucket index.
"""

from itertools import zip_longest
from typing import Optional, Sequence

import structlog
from dateutil.relativedelta import relativedelta

from coachboard.exceptions import InvalidRangeError
from coachboard.models.analytics import (
    ComparisonResult,
    DateRange,
    MetricComparison,
    PairedPoint,
    RangeSummary,
    SeriesComparison,
    TrendSeries,
)
from coachboard.models.enums import CHURNED_STATUSES, ComparisonMode, SegmentDimension
from coachboard.models.records import ClientRecord, MembershipRecord, PurchaseRecord
from coachboard.utils.dates import end_of_day, start_of_day, to_instant

from .drilldown import build_growth_series, growth_trend
from .intervals import generate_intervals
from .metrics import churn_trend, member_trend, mrr_trend, percent, price_sum
from .resolver import active_at

logger = structlog.get_logger()

COMPARED_METRICS = (
    "mrr_at_end",
    "members_at_end",
    "new_members",
    "cancellations",
    "churn_rate",
    "lost_mrr",
    "revenue",
    "new_clients",
)


def percent_delta(current: float, previous: float) -> Optional[float]:
    """``(current - previous) / previous * 100``; None when ``previous`` is 0."""
    if previous == 0:
        return None
    return (current - previous) / previous * 100


def resolve_comparison_range(
    date_range: DateRange,
    mode: ComparisonMode,
    custom: Optional[DateRange] = None,
) -> DateRange:
    """
    Derive the comparison window.

    Args:
        date_range: Primary window
        mode: previous_period (same length, ending the day before ``from``),
            previous_year (both ends one calendar year earlier) or custom
        custom: Explicit window, required for ``custom``

    Returns:
        Comparison DateRange

    Raises:
        InvalidRangeError: If ``custom`` is requested without a range
    """
    if mode == ComparisonMode.CUSTOM:
        if custom is None:
            raise InvalidRangeError("Custom comparison requires a comparison range")
        return custom

    if mode == ComparisonMode.PREVIOUS_YEAR:
        return DateRange(
            from_=date_range.from_ - relativedelta(years=1),
            to=date_range.to - relativedelta(years=1),
        )

    length = date_range.to - date_range.from_
    previous_to = date_range.from_ - relativedelta(days=1)
    return DateRange(from_=previous_to - length, to=previous_to)


def summarize_range(
    memberships: Sequence[MembershipRecord],
    purchases: Sequence[PurchaseRecord],
    clients: Sequence[ClientRecord],
    date_range: DateRange,
) -> RangeSummary:
    """
    Window scalars with every date predicate bound to ``date_range``.

    The window runs from the start of the ``from`` day to the end of the ``to``
    day. Stock values are reconstructed from dates, since stored status only
    describes the present.
    """
    window_start = start_of_day(date_range.from_)
    window_end = end_of_day(date_range.to)

    at_end = active_at(memberships, window_end)
    at_start = active_at(memberships, window_start)
    new_members = [
        m for m in memberships
        if window_start <= to_instant(m.start_date) <= window_end
    ]
    cancellations = [
        m for m in memberships
        if m.status in CHURNED_STATUSES
        and m.end_date is not None
        and window_start <= to_instant(m.end_date) <= window_end
    ]
    revenue = sum(
        p.amount for p in purchases if window_start <= p.purchased_at <= window_end
    )
    new_clients = sum(1 for c in clients if window_start <= c.created_at <= window_end)

    return RangeSummary(
        date_range=date_range,
        mrr_at_end=price_sum(at_end),
        members_at_end=len(at_end),
        members_at_start=len(at_start),
        new_members=len(new_members),
        cancellations=len(cancellations),
        churn_rate=percent(len(cancellations), len(at_start)),
        lost_mrr=price_sum(cancellations),
        revenue=revenue,
        new_clients=new_clients,
    )


def compare_metrics(current: RangeSummary, previous: RangeSummary) -> list[MetricComparison]:
    comparisons = []
    for metric in COMPARED_METRICS:
        c = float(getattr(current, metric))
        p = float(getattr(previous, metric))
        comparisons.append(
            MetricComparison(metric=metric, current=c, previous=p, delta_percent=percent_delta(c, p))
        )
    return comparisons


def pair_series(name: str, current: TrendSeries, previous: TrendSeries) -> SeriesComparison:
    """Pair two series point by point; the shorter one is padded with None."""
    points = []
    for index, (c, p) in enumerate(zip_longest(current.points, previous.points)):
        delta = None
        if c is not None and p is not None:
            delta = percent_delta(c.value, p.value)
        points.append(
            PairedPoint(
                index=index,
                current_label=c.label if c is not None else None,
                current=c.value if c is not None else None,
                previous_label=p.label if p is not None else None,
                previous=p.value if p is not None else None,
                delta_percent=delta,
            )
        )
    return SeriesComparison(name=name, points=points)


def _window_series(
    memberships: Sequence[MembershipRecord],
    purchases: Sequence[PurchaseRecord],
    clients: Sequence[ClientRecord],
    date_range: DateRange,
    segment_by: Optional[SegmentDimension],
) -> tuple:
    intervals = generate_intervals(date_range)
    growth = build_growth_series(intervals, clients, purchases)
    series = {
        "mrr": mrr_trend(memberships, intervals, segment_by=segment_by),
        "members": member_trend(memberships, intervals, segment_by=segment_by),
        "churn_rate": churn_trend(memberships, intervals),
        "revenue": growth_trend("revenue", intervals.granularity, growth),
        "new_clients": growth_trend("new_clients", intervals.granularity, growth),
    }
    return intervals, series


def compare_ranges(
    memberships: Sequence[MembershipRecord],
    purchases: Sequence[PurchaseRecord],
    clients: Sequence[ClientRecord],
    date_range: DateRange,
    mode: ComparisonMode,
    custom_range: Optional[DateRange] = None,
    segment_by: Optional[SegmentDimension] = None,
) -> ComparisonResult:
    """
    Run the window aggregations over the primary and comparison windows and
    pair the results.

    Args:
        memberships: All memberships
        purchases: All purchases
        clients: All clients
        date_range: Primary window
        mode: How to derive the comparison window
        custom_range: Explicit comparison window for ``custom``
        segment_by: Optional split carried into the stock series

    Returns:
        ComparisonResult with paired scalars and series
    """
    comparison_range = resolve_comparison_range(date_range, mode, custom_range)

    primary_intervals, primary_series = _window_series(
        memberships, purchases, clients, date_range, segment_by
    )
    previous_intervals, previous_series = _window_series(
        memberships, purchases, clients, comparison_range, segment_by
    )

    primary = summarize_range(memberships, purchases, clients, date_range)
    previous = summarize_range(memberships, purchases, clients, comparison_range)

    result = ComparisonResult(
        mode=mode,
        primary_range=date_range,
        comparison_range=comparison_range,
        primary_granularity=primary_intervals.granularity,
        comparison_granularity=previous_intervals.granularity,
        primary=primary,
        previous=previous,
        metrics=compare_metrics(primary, previous),
        series=[
            pair_series(name, primary_series[name], previous_series[name])
            for name in primary_series
        ],
    )

    logger.info(
        "comparison_computed",
        mode=mode.value,
        primary_granularity=result.primary_granularity.value,
        comparison_granularity=result.comparison_granularity.value,
        revenue_delta=percent_delta(primary.revenue, previous.revenue),
    )
    return result
