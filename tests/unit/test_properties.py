"""
Property-based tests using Hypothesis for the Coachboard analytics engine.

These tests verify invariants and bounds across the engine components:
bucket coverage, segment sums, growth clamping, drill-down reconciliation and
the zero-denominator guards.
"""

from datetime import date, datetime, timedelta

import hypothesis.strategies as st
import pytest
from hypothesis import given, settings

from coachboard.engine.comparison import percent_delta
from coachboard.engine.drilldown import build_growth_series, drill_down
from coachboard.engine.forecast import GROWTH_CEILING, GROWTH_FLOOR, estimate_growth
from coachboard.engine.intervals import generate_intervals
from coachboard.engine.metrics import compute_churn, compute_mrr, summarize_memberships
from coachboard.engine.resolver import active_at, currently_active
from coachboard.models.analytics import DateRange
from coachboard.models.enums import (
    DrillDownKind,
    MembershipStatus,
    MembershipTier,
    ProgramType,
    PurchaseType,
    SegmentDimension,
)
from tests.conftest import make_client, make_membership, make_purchase

ONE_MILLISECOND = timedelta(milliseconds=1)

range_starts = st.dates(min_value=date(2020, 1, 1), max_value=date(2026, 12, 31))
span_days = st.integers(min_value=0, max_value=400)
prices = st.one_of(
    st.none(),
    st.floats(min_value=0.0, max_value=5000.0, allow_nan=False, allow_infinity=False),
)

memberships_strategy = st.lists(
    st.builds(
        make_membership,
        tier=st.sampled_from(list(MembershipTier)),
        status=st.sampled_from(list(MembershipStatus)),
        monthly_price=prices,
        start_date=st.dates(min_value=date(2022, 1, 1), max_value=date(2024, 6, 30)),
        program_type=st.one_of(st.none(), st.sampled_from(list(ProgramType))),
    ),
    max_size=25,
)


# =============================================================================
# Interval Generator
# =============================================================================


@given(start=range_starts, span=span_days)
@settings(max_examples=150)
def test_prop_buckets_contiguous_and_covering(start: date, span: int):
    """Buckets are ordered, non-overlapping, gap-free and cover [from, to]."""
    end = start + timedelta(days=span)
    intervals = generate_intervals(DateRange(from_=start, to=end))
    buckets = intervals.buckets

    assert buckets
    assert buckets[0].start <= datetime.combine(start, datetime.min.time())
    assert buckets[-1].end >= datetime.combine(end, datetime.min.time())
    for current, following in zip(buckets, buckets[1:]):
        assert current.start < current.end
        assert following.start == current.end + ONE_MILLISECOND


@given(start=range_starts, span=span_days)
@settings(max_examples=100)
def test_prop_every_instant_in_range_has_one_bucket(start: date, span: int):
    end = start + timedelta(days=span)
    intervals = generate_intervals(DateRange(from_=start, to=end))
    probe = datetime.combine(start + timedelta(days=span // 2), datetime.min.time())

    containing = [b for b in intervals.buckets if b.contains(probe)]
    assert len(containing) == 1
    assert intervals.bucket_of(probe) == containing[0]


# =============================================================================
# Resolver
# =============================================================================


@given(
    start=st.dates(min_value=date(2022, 1, 1), max_value=date(2024, 12, 31)),
    offset=st.integers(min_value=0, max_value=1000),
)
def test_prop_open_membership_active_after_start(start: date, offset: int):
    m = make_membership(start_date=start)
    instant = datetime.combine(start, datetime.min.time()) + timedelta(days=offset)
    assert active_at([m], instant) == [m]


@given(
    start=st.dates(min_value=date(2022, 1, 1), max_value=date(2024, 12, 31)),
    length=st.integers(min_value=0, max_value=500),
    after=st.integers(min_value=1, max_value=500),
)
def test_prop_ended_membership_inactive_after_end(start: date, length: int, after: int):
    end = start + timedelta(days=length)
    m = make_membership(start_date=start, end_date=end)
    instant = datetime.combine(end, datetime.min.time()) + timedelta(days=after)
    assert active_at([m], instant) == []


# =============================================================================
# Metric Aggregators
# =============================================================================


@given(memberships=memberships_strategy, dimension=st.sampled_from(list(SegmentDimension)))
@settings(max_examples=100)
def test_prop_segments_sum_to_total(memberships, dimension):
    summary = compute_mrr(currently_active(memberships), segment_by=dimension)
    assert sum(summary.segments.values()) == pytest.approx(summary.mrr)
    assert sum(summary.segment_members.values()) == summary.active_members


@given(memberships=memberships_strategy)
@settings(max_examples=100)
def test_prop_rates_are_bounded(memberships):
    now = datetime(2024, 6, 30)
    summary = summarize_memberships(memberships, now)
    for rate in (
        summary.churn.monthly_churn_rate,
        summary.churn.previous_monthly_churn_rate,
        summary.churn.lifetime_churn_rate,
        summary.retention.retention_rate,
        summary.renewals.renewal_success_rate,
    ):
        assert 0.0 <= rate <= 100.0


@given(memberships=memberships_strategy)
@settings(max_examples=100)
def test_prop_monthly_retention_complements_churn(memberships):
    now = datetime(2024, 6, 30)
    active = currently_active(memberships)
    churn = compute_churn(memberships, active, now)
    summary = summarize_memberships(memberships, now)
    assert summary.retention.monthly_retention_rate == pytest.approx(100 - churn.monthly_churn_rate)


# =============================================================================
# Forecast
# =============================================================================


@given(
    values=st.lists(
        st.floats(min_value=0.0, allow_nan=False, allow_infinity=False),
        max_size=12,
    )
)
@settings(max_examples=200)
def test_prop_growth_within_bounds(values):
    growth = estimate_growth(values)
    assert GROWTH_FLOOR <= growth <= GROWTH_CEILING


def test_growth_near_float_max_stays_bounded():
    assert estimate_growth([1e308] * 4) == pytest.approx(0.0)
    growth = estimate_growth([1e300, 1e300, 1.7e308, 1.7e308])
    assert GROWTH_FLOOR <= growth <= GROWTH_CEILING


@given(
    level=st.floats(min_value=0.01, max_value=1e6, allow_nan=False, allow_infinity=False),
    n=st.integers(min_value=2, max_value=6),
)
def test_prop_flat_series_has_zero_growth(level: float, n: int):
    assert estimate_growth([level] * n) == pytest.approx(0.0)


# =============================================================================
# Comparison
# =============================================================================


@given(
    current=st.floats(min_value=-1e6, max_value=1e6, allow_nan=False, allow_infinity=False),
    previous=st.floats(min_value=-1e6, max_value=1e6, allow_nan=False, allow_infinity=False),
)
def test_prop_percent_delta_absent_only_for_zero_previous(current: float, previous: float):
    delta = percent_delta(current, previous)
    if previous == 0:
        assert delta is None
    else:
        assert delta is not None


# =============================================================================
# Drill-down reconciliation
# =============================================================================

instants = st.datetimes(min_value=datetime(2024, 1, 1), max_value=datetime(2024, 4, 30, 23, 59))


@given(
    created=st.lists(instants, max_size=20),
    purchased=st.lists(
        st.tuples(
            instants,
            st.floats(min_value=0.0, max_value=1000.0, allow_nan=False, allow_infinity=False),
            st.sampled_from(list(PurchaseType)),
        ),
        max_size=20,
    ),
    span=st.integers(min_value=0, max_value=120),
)
@settings(max_examples=75)
def test_prop_drilldown_reconciles_with_growth_series(created, purchased, span):
    clients = [make_client(created_at=c) for c in created]
    purchases = [
        make_purchase(purchased_at=at, amount=amount, purchase_type=kind)
        for at, amount, kind in purchased
    ]
    intervals = generate_intervals(
        DateRange(from_=date(2024, 1, 1), to=date(2024, 1, 1) + timedelta(days=span))
    )
    growth = build_growth_series(intervals, clients, purchases)

    for bucket, point in zip(intervals.buckets, growth):
        new = drill_down(DrillDownKind.NEW_CLIENTS, clients, purchases, bucket=bucket)
        total = drill_down(DrillDownKind.CUMULATIVE_CLIENTS, clients, purchases, bucket=bucket)
        revenue = drill_down(DrillDownKind.REVENUE, clients, purchases, bucket=bucket)
        assert new.summary.count == point.new_clients
        assert total.summary.count == point.cumulative_clients
        assert revenue.summary.total_amount == pytest.approx(point.revenue)
