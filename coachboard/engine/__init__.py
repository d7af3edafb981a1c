"""
Membership & revenue analytics engine.

Pure, synchronous functions over membership, purchase and client records:

- Interval generation: date range -> day/week/month buckets
- Point-in-time resolution: who was a member at an instant or in a bucket
- Metric aggregation: MRR, churn, retention, tenure, renewals, programs
- Comparison: the same aggregations re-bound to a second window
- Forecast: short-horizon revenue projection per category
- Drill-down: the records behind one chart point

Nothing here reads storage or keeps state between calls except the
``LatestResultGate`` used by the service to order overlapping passes.
"""

__version__ = "1.0.0"

__all__ = [
    "generate_intervals",
    "trailing_months",
    "active_at",
    "active_through_bucket",
    "active_at_bucket_start",
    "currently_active",
    "compute_mrr",
    "compute_churn",
    "compute_retention",
    "summarize_memberships",
    "summarize_programs",
    "mrr_trend",
    "member_trend",
    "churn_trend",
    "compare_ranges",
    "percent_delta",
    "resolve_comparison_range",
    "RevenueForecaster",
    "estimate_growth",
    "build_growth_series",
    "drill_down",
    "LatestResultGate",
]

from coachboard.engine.comparison import compare_ranges, percent_delta, resolve_comparison_range
from coachboard.engine.drilldown import build_growth_series, drill_down
from coachboard.engine.forecast import RevenueForecaster, estimate_growth
from coachboard.engine.intervals import generate_intervals, trailing_months
from coachboard.engine.metrics import (
    churn_trend,
    compute_churn,
    compute_mrr,
    compute_retention,
    member_trend,
    mrr_trend,
    summarize_memberships,
    summarize_programs,
)
from coachboard.engine.recompute import LatestResultGate
from coachboard.engine.resolver import (
    active_at,
    active_at_bucket_start,
    active_through_bucket,
    currently_active,
)
