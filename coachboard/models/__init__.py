"""
Pydantic v2 data models for the analytics engine.

Model Organization:
    - enums: Enumeration types and category mappings
    - records: Source records read from the CRM store (memberships, purchases, clients)
    - analytics: Request parameters and every result shape the engine emits

Usage:
    >>> from coachboard.models import AnalyticsRequest, DateRange
    >>> request = AnalyticsRequest(
    ...     date_range=DateRange(**{"from": "2024-01-01", "to": "2024-06-30"}),
    ...     comparison_mode="previous_period",
    ... )
"""

from .analytics import (
    AcquisitionSummary,
    AnalyticsRequest,
    Bucket,
    CategoryAmounts,
    ChurnSummary,
    ComparisonResult,
    DashboardResult,
    DateRange,
    DrillDownResult,
    DrillDownSummary,
    ForecastMonth,
    ForecastSummary,
    GrowthPoint,
    IntervalSet,
    MembershipSummary,
    MetricComparison,
    MRRSummary,
    PairedPoint,
    ProgramBreakdown,
    ProgramShare,
    ProgramTotals,
    RangeSummary,
    RenewalSummary,
    RetentionSummary,
    RevenueForecast,
    SeriesComparison,
    SeriesPoint,
    TenureBand,
    TenureSummary,
    TrendSeries,
)
from .enums import (
    CHURNED_STATUSES,
    DEFAULT_PROGRAM_TYPE,
    PURCHASE_CATEGORY,
    ComparisonMode,
    DrillDownKind,
    Granularity,
    MarketingStatus,
    MembershipStatus,
    MembershipTier,
    ProgramType,
    PurchaseType,
    RevenueCategory,
    SegmentDimension,
)
from .records import ClientRecord, MembershipRecord, PurchaseRecord

__all__ = [
    # Enumerations
    "CHURNED_STATUSES",
    "DEFAULT_PROGRAM_TYPE",
    "PURCHASE_CATEGORY",
    "ComparisonMode",
    "DrillDownKind",
    "Granularity",
    "MarketingStatus",
    "MembershipStatus",
    "MembershipTier",
    "ProgramType",
    "PurchaseType",
    "RevenueCategory",
    "SegmentDimension",
    # Records
    "ClientRecord",
    "MembershipRecord",
    "PurchaseRecord",
    # Requests and intervals
    "AnalyticsRequest",
    "Bucket",
    "DateRange",
    "IntervalSet",
    # Results
    "AcquisitionSummary",
    "CategoryAmounts",
    "ChurnSummary",
    "ComparisonResult",
    "DashboardResult",
    "DrillDownResult",
    "DrillDownSummary",
    "ForecastMonth",
    "ForecastSummary",
    "GrowthPoint",
    "MembershipSummary",
    "MetricComparison",
    "MRRSummary",
    "PairedPoint",
    "ProgramBreakdown",
    "ProgramShare",
    "ProgramTotals",
    "RangeSummary",
    "RenewalSummary",
    "RetentionSummary",
    "RevenueForecast",
    "SeriesComparison",
    "SeriesPoint",
    "TenureBand",
    "TenureSummary",
    "TrendSeries",
]
