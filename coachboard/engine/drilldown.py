"""
Drill-Down Aggregator.

Returns the records underlying one chart point, and builds the growth chart
series those points come from. Both sides use ``Bucket.contains`` for the
"created/purchased in bucket" predicate, so a drill-down for a bucket sums to
exactly the value the chart showed for it.

Records are returned most recent first (ties broken by id, descending) so
exports are complete and stable.
"""

from typing import Iterable, Optional, Sequence

import structlog

from coachboard.exceptions import InvalidRangeError
from coachboard.models.analytics import (
    Bucket,
    DrillDownResult,
    DrillDownSummary,
    GrowthPoint,
    IntervalSet,
    SeriesPoint,
    TrendSeries,
)
from coachboard.models.enums import DrillDownKind, Granularity
from coachboard.models.records import ClientRecord, PurchaseRecord

logger = structlog.get_logger()

UNKNOWN_MARKETING_STATUS = "unknown"

_BUCKET_KINDS = frozenset(
    {DrillDownKind.NEW_CLIENTS, DrillDownKind.CUMULATIVE_CLIENTS, DrillDownKind.REVENUE}
)
_SLICE_KINDS = frozenset({DrillDownKind.MARKETING_STATUS, DrillDownKind.PURCHASE_TYPE})


def marketing_status_of(client: ClientRecord) -> str:
    if client.marketing_status is None:
        return UNKNOWN_MARKETING_STATUS
    return client.marketing_status.value


def _newest_clients(clients: Iterable[ClientRecord]) -> list[ClientRecord]:
    return sorted(clients, key=lambda c: (c.created_at, c.id), reverse=True)


def _newest_purchases(purchases: Iterable[PurchaseRecord]) -> list[PurchaseRecord]:
    return sorted(purchases, key=lambda p: (p.purchased_at, p.id), reverse=True)


def clients_created_in(clients: Iterable[ClientRecord], bucket: Bucket) -> list[ClientRecord]:
    return [c for c in clients if bucket.contains(c.created_at)]


def clients_created_by(clients: Iterable[ClientRecord], bucket: Bucket) -> list[ClientRecord]:
    return [c for c in clients if c.created_at <= bucket.end]


def purchases_in(purchases: Iterable[PurchaseRecord], bucket: Bucket) -> list[PurchaseRecord]:
    return [p for p in purchases if bucket.contains(p.purchased_at)]


def build_growth_series(
    intervals: IntervalSet,
    clients: Sequence[ClientRecord],
    purchases: Sequence[PurchaseRecord],
) -> list[GrowthPoint]:
    """
    Per-bucket new clients, cumulative clients and revenue.

    Args:
        intervals: Buckets to aggregate over
        clients: All clients
        purchases: All purchases

    Returns:
        One GrowthPoint per bucket, in bucket order
    """
    points = []
    for bucket in intervals.buckets:
        points.append(
            GrowthPoint(
                label=bucket.label,
                start=bucket.start,
                end=bucket.end,
                new_clients=len(clients_created_in(clients, bucket)),
                cumulative_clients=len(clients_created_by(clients, bucket)),
                revenue=sum(p.amount for p in purchases_in(purchases, bucket)),
            )
        )
    return points


def growth_trend(name: str, granularity: Granularity, points: Sequence[GrowthPoint]) -> TrendSeries:
    """Lift one GrowthPoint field (``new_clients``, ``revenue``, ...) into a TrendSeries."""
    return TrendSeries(
        name=name,
        granularity=granularity,
        points=[
            SeriesPoint(label=p.label, start=p.start, end=p.end, value=float(getattr(p, name)))
            for p in points
        ],
    )


def _client_summary(clients: Sequence[ClientRecord]) -> DrillDownSummary:
    breakdown: dict[str, float] = {}
    for c in clients:
        status = marketing_status_of(c)
        breakdown[status] = breakdown.get(status, 0) + 1
    return DrillDownSummary(count=len(clients), breakdown=breakdown)


def _purchase_summary(purchases: Sequence[PurchaseRecord]) -> DrillDownSummary:
    breakdown: dict[str, float] = {}
    for p in purchases:
        key = p.purchase_type.value
        breakdown[key] = breakdown.get(key, 0.0) + p.amount
    return DrillDownSummary(
        count=len(purchases),
        total_amount=sum(p.amount for p in purchases),
        breakdown=breakdown,
    )


def drill_down(
    kind: DrillDownKind,
    clients: Sequence[ClientRecord],
    purchases: Sequence[PurchaseRecord],
    bucket: Optional[Bucket] = None,
    slice_value: Optional[str] = None,
) -> DrillDownResult:
    """
    Records underlying one chart point or categorical slice.

    Args:
        kind: What to select
        clients: All clients
        purchases: All purchases
        bucket: Chart bucket; required for new_clients, cumulative_clients and
            revenue, optional narrowing for the slice kinds
        slice_value: Marketing status (``unknown`` for clients without one) or
            purchase type; required for the slice kinds

    Returns:
        DrillDownResult with sorted records and a summary

    Raises:
        InvalidRangeError: If the bucket or slice value the kind needs is missing
    """
    if kind in _BUCKET_KINDS and bucket is None:
        raise InvalidRangeError(
            f"Drill-down '{kind.value}' requires a bucket", context={"kind": kind.value}
        )
    if kind in _SLICE_KINDS and not slice_value:
        raise InvalidRangeError(
            f"Drill-down '{kind.value}' requires a slice value", context={"kind": kind.value}
        )

    selected_clients: list[ClientRecord] = []
    selected_purchases: list[PurchaseRecord] = []

    if kind == DrillDownKind.NEW_CLIENTS:
        selected_clients = clients_created_in(clients, bucket)
        label = f"New clients: {bucket.label}"
    elif kind == DrillDownKind.CUMULATIVE_CLIENTS:
        selected_clients = clients_created_by(clients, bucket)
        label = f"Total clients through {bucket.label}"
    elif kind == DrillDownKind.REVENUE:
        selected_purchases = purchases_in(purchases, bucket)
        label = f"Revenue: {bucket.label}"
    elif kind == DrillDownKind.MARKETING_STATUS:
        pool = clients_created_in(clients, bucket) if bucket is not None else clients
        selected_clients = [c for c in pool if marketing_status_of(c) == slice_value]
        label = f"Clients with status {slice_value}"
    else:
        pool = purchases_in(purchases, bucket) if bucket is not None else purchases
        selected_purchases = [p for p in pool if p.purchase_type.value == slice_value]
        label = f"Purchases of type {slice_value}"

    if kind in (DrillDownKind.REVENUE, DrillDownKind.PURCHASE_TYPE):
        summary = _purchase_summary(selected_purchases)
    else:
        summary = _client_summary(selected_clients)

    logger.debug(
        "drilldown_computed",
        kind=kind.value,
        bucket=bucket.label if bucket is not None else None,
        slice_value=slice_value,
        count=summary.count,
    )

    return DrillDownResult(
        kind=kind,
        label=label,
        period_start=bucket.start if bucket is not None else None,
        period_end=bucket.end if bucket is not None else None,
        slice_value=slice_value,
        clients=_newest_clients(selected_clients),
        purchases=_newest_purchases(selected_purchases),
        summary=summary,
    )
