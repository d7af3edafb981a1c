"""
Membership Metric Aggregators: MRR, churn, retention, tenure, renewals.

All aggregators are pure functions over record lists. Empty inputs yield
zero-valued summaries and every ratio is guarded against a zero denominator.

"Now" metrics take the active population as an explicit argument. Callers pass
``currently_active(...)`` (stored status) when anchoring at the real present,
or ``active_at(..., instant)`` (dates only) when reconstructing the past.

Retention is derived on its own rather than as the churn complement; the two
computations are kept apart so a change to one cannot silently move the other.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

import structlog

from coachboard.models.analytics import (
    AcquisitionSummary,
    ChurnSummary,
    IntervalSet,
    MembershipSummary,
    MRRSummary,
    ProgramBreakdown,
    ProgramShare,
    ProgramTotals,
    RenewalSummary,
    RetentionSummary,
    SeriesPoint,
    TenureBand,
    TenureSummary,
    TrendSeries,
)
from coachboard.models.enums import (
    CHURNED_STATUSES,
    MembershipStatus,
    ProgramType,
    SegmentDimension,
)
from coachboard.models.records import MembershipRecord
from coachboard.utils.dates import months_between, to_instant

from .resolver import (
    active_at_bucket_start,
    active_through_bucket,
    currently_active,
    filter_by_program,
    filter_segment,
    segment_key,
    segment_values,
)

logger = structlog.get_logger()

CHURN_WINDOW_DAYS = 30
RENEWAL_HORIZON_DAYS = 30
RENEWAL_LOOKBACK_DAYS = 90
MONTHS_PER_YEAR = 12

# (label, lower bound inclusive, upper bound exclusive or None)
TENURE_BANDS = (
    ("0-3 months", 0, 3),
    ("3-6 months", 3, 6),
    ("6-12 months", 6, 12),
    ("12+ months", 12, None),
)


def price_sum(memberships: Iterable[MembershipRecord]) -> float:
    return sum(m.monthly_price for m in memberships)


def percent(numerator: float, denominator: float) -> float:
    """``numerator / denominator * 100``, or 0 when the denominator is 0."""
    if denominator == 0:
        return 0.0
    return numerator / denominator * 100


def _ended_within(
    membership: MembershipRecord, start: datetime, end: datetime, *, include_end: bool = True
) -> bool:
    if membership.end_date is None:
        return False
    ended = to_instant(membership.end_date)
    if include_end:
        return start <= ended <= end
    return start <= ended < end


def _started_within(
    membership: MembershipRecord, start: datetime, end: datetime, *, include_end: bool = True
) -> bool:
    started = to_instant(membership.start_date)
    if include_end:
        return start <= started <= end
    return start <= started < end


# =============================================================================
# MRR
# =============================================================================


def compute_mrr(
    active: Sequence[MembershipRecord],
    segment_by: Optional[SegmentDimension] = None,
) -> MRRSummary:
    """
    Monthly recurring revenue over an active population.

    Args:
        active: Memberships considered active
        segment_by: Optional tier/program split; every segment value is present,
            zero-filled, so segments always sum to the total

    Returns:
        MRRSummary
    """
    mrr = price_sum(active)
    count = len(active)

    segments: dict[str, float] = {}
    segment_members: dict[str, int] = {}
    if segment_by is not None:
        segments = {value: 0.0 for value in segment_values(segment_by)}
        segment_members = {value: 0 for value in segment_values(segment_by)}
        for m in active:
            key = segment_key(m, segment_by)
            segments[key] += m.monthly_price
            segment_members[key] += 1

    return MRRSummary(
        mrr=mrr,
        active_members=count,
        projected_annual=mrr * MONTHS_PER_YEAR,
        avg_revenue_per_member=mrr / count if count else 0.0,
        segment_by=segment_by,
        segments=segments,
        segment_members=segment_members,
    )


# =============================================================================
# Churn and retention
# =============================================================================


def count_churned(memberships: Iterable[MembershipRecord]) -> int:
    return sum(1 for m in memberships if m.status in CHURNED_STATUSES)


def compute_churn(
    memberships: Sequence[MembershipRecord],
    active: Sequence[MembershipRecord],
    now: datetime,
    window_days: int = CHURN_WINDOW_DAYS,
) -> ChurnSummary:
    """
    Trailing-window churn anchored at ``now``.

    The monthly rate's denominator rebuilds "active at the start of the window"
    as active-now plus those who cancelled inside it.

    Args:
        memberships: Whole population (any status)
        active: Members active at ``now``
        now: Window anchor
        window_days: Window length

    Returns:
        ChurnSummary
    """
    window = timedelta(days=window_days)
    window_start = now - window
    previous_start = now - 2 * window

    cancelled = [m for m in memberships if m.status == MembershipStatus.CANCELLED]
    recent = [m for m in cancelled if _ended_within(m, window_start, now)]
    previous = [
        m for m in cancelled
        if _ended_within(m, previous_start, window_start, include_end=False)
    ]

    active_now = len(active)
    total_churned = count_churned(memberships)

    return ChurnSummary(
        active_now=active_now,
        recent_cancellations=len(recent),
        previous_cancellations=len(previous),
        monthly_churn_rate=percent(len(recent), active_now + len(recent)),
        previous_monthly_churn_rate=percent(
            len(previous), active_now + len(previous) + len(recent)
        ),
        lost_mrr=price_sum(recent),
        total_churned=total_churned,
        lifetime_churn_rate=percent(total_churned, active_now + total_churned),
    )


def compute_retention(
    memberships: Sequence[MembershipRecord],
    active: Sequence[MembershipRecord],
    churn: ChurnSummary,
) -> RetentionSummary:
    """
    Retention, derived from the active and churned counts directly.

    ``retention_rate`` intentionally does not read ``churn.lifetime_churn_rate``;
    ``monthly_retention_rate`` is the complement of the monthly churn rate.
    """
    active_now = len(active)
    churned = sum(
        1
        for m in memberships
        if m.status in (MembershipStatus.CANCELLED, MembershipStatus.EXPIRED)
    )
    return RetentionSummary(
        retention_rate=percent(active_now, active_now + churned),
        monthly_retention_rate=100 - churn.monthly_churn_rate,
    )


# =============================================================================
# Tenure
# =============================================================================


def tenure_months(membership: MembershipRecord, now: datetime) -> int:
    """Whole calendar months since the membership started (never negative)."""
    return max(0, months_between(now, membership.start_date))


def compute_tenure(active: Sequence[MembershipRecord], now: datetime) -> TenureSummary:
    tenures = [tenure_months(m, now) for m in active]

    distribution = []
    for label, low, high in TENURE_BANDS:
        count = sum(1 for t in tenures if t >= low and (high is None or t < high))
        distribution.append(TenureBand(label=label, min_months=low, max_months=high, count=count))

    return TenureSummary(
        avg_tenure=sum(tenures) / len(tenures) if tenures else 0.0,
        longest_tenure=max(tenures) if tenures else 0,
        distribution=distribution,
    )


# =============================================================================
# Renewals and acquisition
# =============================================================================


def compute_renewals(
    memberships: Sequence[MembershipRecord],
    active: Sequence[MembershipRecord],
    now: datetime,
    horizon_days: int = RENEWAL_HORIZON_DAYS,
    lookback_days: int = RENEWAL_LOOKBACK_DAYS,
) -> RenewalSummary:
    """
    Upcoming renewals and the trailing renewal success proxy.

    Success counts memberships whose renewal fell in the look-back window and
    whose *current* status is active; status at the renewal moment is not stored.
    """
    horizon_end = now + timedelta(days=horizon_days)
    lookback_start = now - timedelta(days=lookback_days)

    upcoming = [
        m for m in active
        if m.renewal_date is not None and now <= to_instant(m.renewal_date) <= horizon_end
    ]
    due_trailing = [
        m for m in memberships
        if m.renewal_date is not None and lookback_start <= to_instant(m.renewal_date) < now
    ]
    retained = [m for m in due_trailing if m.status == MembershipStatus.ACTIVE]

    return RenewalSummary(
        up_for_renewal=len(upcoming),
        mrr_at_risk=price_sum(upcoming),
        renewals_due_trailing=len(due_trailing),
        renewals_retained=len(retained),
        renewal_success_rate=percent(len(retained), len(due_trailing)),
    )


def compute_acquisition(
    memberships: Sequence[MembershipRecord],
    lost_mrr: float,
    now: datetime,
    window_days: int = CHURN_WINDOW_DAYS,
) -> AcquisitionSummary:
    window = timedelta(days=window_days)
    window_start = now - window
    new = [m for m in memberships if _started_within(m, window_start, now)]
    previous_new = [
        m for m in memberships
        if _started_within(m, now - 2 * window, window_start, include_end=False)
    ]
    new_mrr = price_sum(new)

    return AcquisitionSummary(
        new_members=len(new),
        previous_new_members=len(previous_new),
        new_mrr=new_mrr,
        net_mrr_change=new_mrr - lost_mrr,
        paused_members=sum(1 for m in memberships if m.status == MembershipStatus.PAUSED),
    )


# =============================================================================
# Population summaries
# =============================================================================


def summarize_memberships(
    memberships: Sequence[MembershipRecord],
    now: datetime,
    active: Optional[Sequence[MembershipRecord]] = None,
    segment_by: Optional[SegmentDimension] = None,
    churn_window_days: int = CHURN_WINDOW_DAYS,
    renewal_horizon_days: int = RENEWAL_HORIZON_DAYS,
    renewal_lookback_days: int = RENEWAL_LOOKBACK_DAYS,
) -> MembershipSummary:
    """
    Every "as of now" metric for one membership population.

    Args:
        memberships: Population to summarise
        now: Anchor instant
        active: Active subset; defaults to the stored-status view
        segment_by: Optional MRR split
        churn_window_days: Churn/acquisition window
        renewal_horizon_days: Look-ahead for upcoming renewals
        renewal_lookback_days: Look-back for renewal success

    Returns:
        MembershipSummary
    """
    if active is None:
        active = currently_active(memberships)

    churn = compute_churn(memberships, active, now, window_days=churn_window_days)
    return MembershipSummary(
        total_members=len(memberships),
        mrr=compute_mrr(active, segment_by=segment_by),
        churn=churn,
        retention=compute_retention(memberships, active, churn),
        tenure=compute_tenure(active, now),
        renewals=compute_renewals(
            memberships,
            active,
            now,
            horizon_days=renewal_horizon_days,
            lookback_days=renewal_lookback_days,
        ),
        acquisition=compute_acquisition(
            memberships, churn.lost_mrr, now, window_days=churn_window_days
        ),
    )


def summarize_programs(
    memberships: Sequence[MembershipRecord],
    now: datetime,
    **summary_kwargs,
) -> ProgramBreakdown:
    """
    Repeat ``summarize_memberships`` per program type and total across programs.

    Memberships without a program type count toward the default program.
    """
    programs = {
        program.value: summarize_memberships(
            filter_by_program(memberships, program), now, **summary_kwargs
        )
        for program in ProgramType
    }
    stats = list(programs.values())

    totals = ProgramTotals(
        total_mrr=sum(s.mrr.mrr for s in stats),
        total_active=sum(s.mrr.active_members for s in stats),
        total_new=sum(s.acquisition.new_members for s in stats),
        avg_churn=sum(s.churn.monthly_churn_rate for s in stats) / len(stats),
        avg_retention=sum(s.retention.monthly_retention_rate for s in stats) / len(stats),
        net_mrr_change=sum(s.acquisition.net_mrr_change for s in stats),
    )
    distribution = [
        ProgramShare(program_type=key, mrr=s.mrr.mrr, members=s.mrr.active_members)
        for key, s in programs.items()
        if s.mrr.mrr > 0 or s.mrr.active_members > 0
    ]

    logger.debug(
        "program_breakdown_computed",
        total_mrr=totals.total_mrr,
        total_active=totals.total_active,
        programs_with_members=len(distribution),
    )
    return ProgramBreakdown(programs=programs, totals=totals, distribution=distribution)


# =============================================================================
# Trend series
# =============================================================================


def _stock_series(
    name: str,
    memberships: Sequence[MembershipRecord],
    intervals: IntervalSet,
    measure,
    segment_by: Optional[SegmentDimension],
) -> TrendSeries:
    points = []
    for bucket in intervals.buckets:
        members = active_through_bucket(memberships, bucket)
        segments = {}
        if segment_by is not None:
            segments = {
                value: float(measure(filter_segment(members, segment_by, value)))
                for value in segment_values(segment_by)
            }
        points.append(
            SeriesPoint(
                label=bucket.label,
                start=bucket.start,
                end=bucket.end,
                value=float(measure(members)),
                segments=segments,
            )
        )
    return TrendSeries(name=name, granularity=intervals.granularity, points=points)


def mrr_trend(
    memberships: Sequence[MembershipRecord],
    intervals: IntervalSet,
    segment_by: Optional[SegmentDimension] = None,
) -> TrendSeries:
    """MRR as it stood in each bucket (memberships overlapping the bucket)."""
    return _stock_series("mrr", memberships, intervals, price_sum, segment_by)


def member_trend(
    memberships: Sequence[MembershipRecord],
    intervals: IntervalSet,
    segment_by: Optional[SegmentDimension] = None,
) -> TrendSeries:
    """Member count as it stood in each bucket."""
    return _stock_series("members", memberships, intervals, len, segment_by)


def _bucket_churn_rate(memberships: Sequence[MembershipRecord], bucket) -> float:
    cancellations = [
        m for m in memberships
        if m.status in CHURNED_STATUSES and _ended_within(m, bucket.start, bucket.end)
    ]
    at_start = active_at_bucket_start(memberships, bucket)
    return percent(len(cancellations), len(at_start))


def churn_trend(
    memberships: Sequence[MembershipRecord],
    intervals: IntervalSet,
    segment_by: Optional[SegmentDimension] = None,
) -> TrendSeries:
    """
    Churn rate per bucket: cancellations ending inside the bucket over members
    active at the bucket's first instant.
    """
    points = []
    for bucket in intervals.buckets:
        segments = {}
        if segment_by is not None:
            segments = {
                value: _bucket_churn_rate(filter_segment(memberships, segment_by, value), bucket)
                for value in segment_values(segment_by)
            }
        points.append(
            SeriesPoint(
                label=bucket.label,
                start=bucket.start,
                end=bucket.end,
                value=_bucket_churn_rate(memberships, bucket),
                segments=segments,
            )
        )
    return TrendSeries(name="churn_rate", granularity=intervals.granularity, points=points)
