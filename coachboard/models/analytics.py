"""
Request and result models for the analytics engine.

Every engine entry point is a pure function of its inputs; the request model
below carries what used to live in global dashboard state (date range,
comparison toggle, forecast horizon, the "now" anchor).
"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from coachboard.utils.dates import to_instant

from .enums import (
    ComparisonMode,
    DrillDownKind,
    Granularity,
    SegmentDimension,
)
from .records import ClientRecord, PurchaseRecord


def _coerce_instant(v: Any) -> Any:
    if isinstance(v, (date, datetime)):
        return to_instant(v)
    return v


# =============================================================================
# Requests
# =============================================================================


class DateRange(BaseModel):
    """Closed date range ``[from, to]``; ``from`` must not be after ``to``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    from_: datetime = Field(alias="from", description="Range start (inclusive)")
    to: datetime = Field(description="Range end (inclusive)")

    @field_validator("from_", "to", mode="before")
    @classmethod
    def coerce_instant(cls, v: Any) -> Any:
        return _coerce_instant(v)

    @model_validator(mode="after")
    def check_order(self) -> "DateRange":
        if self.from_ > self.to:
            raise ValueError(f"Range start {self.from_} is after range end {self.to}")
        return self


class AnalyticsRequest(BaseModel):
    """
    Parameters of one analytics pass.

    Attributes:
        date_range: Primary window for trend charts
        comparison_mode: How to derive the comparison window (None = no comparison)
        comparison_range: Explicit comparison window (implies ``custom``)
        now: Anchor for "current" metrics (churn window, tenure, renewals)
        forecast_months: Number of projected periods
        segment_by: Optional split applied to the MRR/member trend series
    """

    date_range: DateRange
    comparison_mode: Optional[ComparisonMode] = None
    comparison_range: Optional[DateRange] = None
    now: datetime = Field(default_factory=datetime.utcnow)
    forecast_months: int = Field(default=6, ge=1, le=36)
    segment_by: Optional[SegmentDimension] = None

    @field_validator("now", mode="before")
    @classmethod
    def coerce_now(cls, v: Any) -> Any:
        return _coerce_instant(v)

    @model_validator(mode="after")
    def resolve_comparison_mode(self) -> "AnalyticsRequest":
        if self.comparison_range is not None and self.comparison_mode is None:
            self.comparison_mode = ComparisonMode.CUSTOM
        if self.comparison_mode == ComparisonMode.CUSTOM and self.comparison_range is None:
            raise ValueError("comparison_mode 'custom' requires comparison_range")
        return self


# =============================================================================
# Intervals
# =============================================================================


class Bucket(BaseModel):
    """One time bucket of a trend chart; both ends inclusive."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    label: str

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end


class IntervalSet(BaseModel):
    """Ordered, non-overlapping buckets covering a date range."""

    model_config = ConfigDict(frozen=True)

    granularity: Granularity
    buckets: list[Bucket]

    def bucket_of(self, instant: Any) -> Optional[Bucket]:
        """Bucket containing ``instant``, or None when it falls outside every bucket."""
        moment = to_instant(instant)
        for bucket in self.buckets:
            if bucket.contains(moment):
                return bucket
        return None


# =============================================================================
# Membership metrics
# =============================================================================


class MRRSummary(BaseModel):
    """Monthly recurring revenue over a set of active memberships."""

    mrr: float = 0.0
    active_members: int = 0
    projected_annual: float = 0.0
    avg_revenue_per_member: float = 0.0
    segment_by: Optional[SegmentDimension] = None
    segments: dict[str, float] = Field(
        default_factory=dict, description="MRR per segment value"
    )
    segment_members: dict[str, int] = Field(
        default_factory=dict, description="Active members per segment value"
    )


class ChurnSummary(BaseModel):
    """Trailing-window churn anchored at ``now``."""

    active_now: int = 0
    recent_cancellations: int = 0
    previous_cancellations: int = 0
    monthly_churn_rate: float = 0.0
    previous_monthly_churn_rate: float = 0.0
    lost_mrr: float = 0.0
    total_churned: int = 0
    lifetime_churn_rate: float = 0.0


class RetentionSummary(BaseModel):
    retention_rate: float = 0.0
    monthly_retention_rate: float = 0.0


class TenureBand(BaseModel):
    label: str
    min_months: int
    max_months: Optional[int] = None
    count: int = 0


class TenureSummary(BaseModel):
    avg_tenure: float = 0.0
    longest_tenure: int = 0
    distribution: list[TenureBand] = Field(default_factory=list)


class RenewalSummary(BaseModel):
    """
    Upcoming renewals and a trailing renewal success proxy.

    ``renewal_success_rate`` uses each membership's *current* status, not its
    status on the renewal date.
    """

    up_for_renewal: int = 0
    mrr_at_risk: float = 0.0
    renewals_due_trailing: int = 0
    renewals_retained: int = 0
    renewal_success_rate: float = 0.0


class AcquisitionSummary(BaseModel):
    new_members: int = 0
    previous_new_members: int = 0
    new_mrr: float = 0.0
    net_mrr_change: float = 0.0
    paused_members: int = 0


class MembershipSummary(BaseModel):
    """All "as of now" membership metrics for one population."""

    total_members: int = 0
    mrr: MRRSummary = Field(default_factory=MRRSummary)
    churn: ChurnSummary = Field(default_factory=ChurnSummary)
    retention: RetentionSummary = Field(default_factory=RetentionSummary)
    tenure: TenureSummary = Field(default_factory=TenureSummary)
    renewals: RenewalSummary = Field(default_factory=RenewalSummary)
    acquisition: AcquisitionSummary = Field(default_factory=AcquisitionSummary)


class ProgramShare(BaseModel):
    program_type: str
    mrr: float
    members: int


class ProgramTotals(BaseModel):
    total_mrr: float = 0.0
    total_active: int = 0
    total_new: int = 0
    avg_churn: float = 0.0
    avg_retention: float = 0.0
    net_mrr_change: float = 0.0


class ProgramBreakdown(BaseModel):
    """Per-program summaries plus cross-program totals."""

    programs: dict[str, MembershipSummary] = Field(default_factory=dict)
    totals: ProgramTotals = Field(default_factory=ProgramTotals)
    distribution: list[ProgramShare] = Field(default_factory=list)


# =============================================================================
# Trend series
# =============================================================================


class SeriesPoint(BaseModel):
    label: str
    start: datetime
    end: datetime
    value: float
    segments: dict[str, float] = Field(default_factory=dict)


class TrendSeries(BaseModel):
    name: str
    granularity: Granularity
    points: list[SeriesPoint] = Field(default_factory=list)

    def values(self) -> list[float]:
        return [p.value for p in self.points]


class GrowthPoint(BaseModel):
    """Chart-level client and revenue aggregates for one bucket."""

    label: str
    start: datetime
    end: datetime
    new_clients: int = 0
    cumulative_clients: int = 0
    revenue: float = 0.0


# =============================================================================
# Comparison
# =============================================================================


class RangeSummary(BaseModel):
    """Window scalars with every date predicate bound to one range."""

    date_range: DateRange
    mrr_at_end: float = 0.0
    members_at_end: int = 0
    members_at_start: int = 0
    new_members: int = 0
    cancellations: int = 0
    churn_rate: float = 0.0
    lost_mrr: float = 0.0
    revenue: float = 0.0
    new_clients: int = 0


class MetricComparison(BaseModel):
    metric: str
    current: float
    previous: float
    delta_percent: Optional[float] = Field(
        default=None, description="Omitted when the previous value is 0"
    )


class PairedPoint(BaseModel):
    index: int
    current_label: Optional[str] = None
    current: Optional[float] = None
    previous_label: Optional[str] = None
    previous: Optional[float] = None
    delta_percent: Optional[float] = None


class SeriesComparison(BaseModel):
    name: str
    points: list[PairedPoint] = Field(default_factory=list)


class ComparisonResult(BaseModel):
    mode: ComparisonMode
    primary_range: DateRange
    comparison_range: DateRange
    primary_granularity: Granularity
    comparison_granularity: Granularity
    primary: RangeSummary
    previous: RangeSummary
    metrics: list[MetricComparison] = Field(default_factory=list)
    series: list[SeriesComparison] = Field(default_factory=list)


# =============================================================================
# Forecast
# =============================================================================


class CategoryAmounts(BaseModel):
    membership: float = 0.0
    supplement: float = 0.0
    lab_testing: float = 0.0
    service: float = 0.0

    @property
    def total(self) -> float:
        return self.membership + self.supplement + self.lab_testing + self.service


class ForecastMonth(BaseModel):
    month: str = Field(description="Calendar month as yyyy-MM")
    label: str
    membership: float = 0.0
    supplement: float = 0.0
    lab_testing: float = 0.0
    service: float = 0.0
    total: float = 0.0
    is_forecast: bool = False


class ForecastSummary(BaseModel):
    projected_monthly_end: float = 0.0
    projected_growth: Optional[float] = Field(
        default=None, description="Percent vs latest historical month; omitted when that is 0"
    )
    total_forecasted_revenue: float = 0.0
    membership_forecast: float = 0.0
    supplement_forecast: float = 0.0
    lab_testing_forecast: float = 0.0
    service_forecast: float = 0.0


class RevenueForecast(BaseModel):
    current_mrr: float = 0.0
    growth_rates: CategoryAmounts = Field(default_factory=CategoryAmounts)
    history: list[ForecastMonth] = Field(default_factory=list)
    forecast: list[ForecastMonth] = Field(default_factory=list)
    combined: list[ForecastMonth] = Field(default_factory=list)
    summary: ForecastSummary = Field(default_factory=ForecastSummary)


# =============================================================================
# Drill-down
# =============================================================================


class DrillDownSummary(BaseModel):
    count: int = 0
    total_amount: float = 0.0
    breakdown: dict[str, float] = Field(
        default_factory=dict,
        description="Clients per marketing status, or amount per purchase type",
    )


class DrillDownResult(BaseModel):
    kind: DrillDownKind
    label: str
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    slice_value: Optional[str] = None
    clients: list[ClientRecord] = Field(default_factory=list)
    purchases: list[PurchaseRecord] = Field(default_factory=list)
    summary: DrillDownSummary = Field(default_factory=DrillDownSummary)


# =============================================================================
# Dashboard
# =============================================================================


class DashboardResult(BaseModel):
    """Everything one dashboard pass hands to the presentation layer."""

    ticket: int = 0
    generated_at: datetime = Field(default_factory=datetime.utcnow)
    date_range: DateRange
    granularity: Granularity
    buckets: list[Bucket] = Field(default_factory=list)
    summary: MembershipSummary
    programs: ProgramBreakdown
    mrr_trend: TrendSeries
    member_trend: TrendSeries
    churn_trend: TrendSeries
    program_trend: Optional[TrendSeries] = Field(
        default=None, description="Monthly MRR per program over the trailing months"
    )
    growth: list[GrowthPoint] = Field(default_factory=list)
    comparison: Optional[ComparisonResult] = None
    forecast: RevenueForecast
