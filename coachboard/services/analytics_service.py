"""
Analytics service: one dashboard pass from repository to result.

Each pass re-reads the full record set, runs the engine, and publishes through
a ``LatestResultGate`` so that when passes overlap only the newest one is kept.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import structlog

from coachboard.config import Settings
from coachboard.engine.comparison import compare_ranges
from coachboard.engine.drilldown import build_growth_series, drill_down
from coachboard.engine.forecast import RevenueForecaster
from coachboard.engine.intervals import generate_intervals, trailing_months
from coachboard.engine.metrics import (
    churn_trend,
    member_trend,
    mrr_trend,
    price_sum,
    summarize_memberships,
    summarize_programs,
)
from coachboard.engine.recompute import LatestResultGate
from coachboard.engine.resolver import currently_active
from coachboard.exceptions import InvalidRangeError, RepositoryError
from coachboard.models.analytics import (
    AnalyticsRequest,
    DashboardResult,
    DateRange,
    DrillDownResult,
    RevenueForecast,
)
from coachboard.models.enums import DrillDownKind, SegmentDimension
from coachboard.models.records import ClientRecord, MembershipRecord, PurchaseRecord
from coachboard.storage.base import RecordRepository

logger = structlog.get_logger()

NO_DATA_MESSAGE = "No data available"


@dataclass(frozen=True)
class RecordSnapshot:
    """The three record streams as read for one pass."""

    memberships: list[MembershipRecord]
    purchases: list[PurchaseRecord]
    clients: list[ClientRecord]


class AnalyticsService:
    """
    Orchestrates repository reads and engine calls.

    Attributes:
        repository: Record source
        settings: Windows, horizons and growth bounds
        gate: Orders overlapping dashboard passes
    """

    def __init__(self, repository: RecordRepository, settings: Settings):
        self.repository = repository
        self.settings = settings
        self.gate: LatestResultGate[DashboardResult] = LatestResultGate()
        self.forecaster = RevenueForecaster(
            history_months=settings.forecast_history_months,
            trailing_months=settings.forecast_trailing_months,
            default_growth=settings.forecast_default_growth,
            growth_floor=settings.forecast_growth_floor,
            growth_ceiling=settings.forecast_growth_ceiling,
        )

    def load_records(self) -> RecordSnapshot:
        """
        Read every record stream.

        Raises:
            RepositoryError: With a "no data available" message when any
                stream cannot be read
        """
        try:
            snapshot = RecordSnapshot(
                memberships=self.repository.list_memberships(),
                purchases=self.repository.list_purchases(),
                clients=self.repository.list_clients(),
            )
        except RepositoryError as e:
            logger.error("records_unavailable", error=e.message)
            raise RepositoryError(NO_DATA_MESSAGE, context={"cause": e.message}) from e

        logger.debug(
            "records_loaded",
            memberships=len(snapshot.memberships),
            purchases=len(snapshot.purchases),
            clients=len(snapshot.clients),
        )
        return snapshot

    def _summary_windows(self) -> dict:
        return {
            "churn_window_days": self.settings.churn_window_days,
            "renewal_horizon_days": self.settings.renewal_horizon_days,
            "renewal_lookback_days": self.settings.renewal_lookback_days,
        }

    def compute_dashboard(self, request: AnalyticsRequest) -> DashboardResult:
        """
        Run a full analytics pass.

        The result is returned to the caller either way; it becomes
        ``latest()`` only if no newer pass has published first.

        Args:
            request: Date range, comparison, forecast horizon and "now" anchor

        Returns:
            DashboardResult

        Raises:
            RepositoryError: If records cannot be read
            InvalidRangeError: If the comparison window cannot be resolved
        """
        ticket = self.gate.begin()
        records = self.load_records()
        now = request.now
        memberships = records.memberships

        intervals = generate_intervals(request.date_range)
        active = currently_active(memberships)
        summary = summarize_memberships(
            memberships,
            now,
            active=active,
            segment_by=request.segment_by,
            **self._summary_windows(),
        )
        programs = summarize_programs(memberships, now, **self._summary_windows())

        comparison = None
        if request.comparison_mode is not None:
            comparison = compare_ranges(
                memberships,
                records.purchases,
                records.clients,
                request.date_range,
                request.comparison_mode,
                custom_range=request.comparison_range,
                segment_by=request.segment_by,
            )

        forecast = self.forecaster.forecast(
            records.purchases,
            current_mrr=summary.mrr.mrr,
            now=now,
            periods=request.forecast_months,
        )

        result = DashboardResult(
            ticket=ticket,
            date_range=request.date_range,
            granularity=intervals.granularity,
            buckets=intervals.buckets,
            summary=summary,
            programs=programs,
            mrr_trend=mrr_trend(memberships, intervals, segment_by=request.segment_by),
            member_trend=member_trend(memberships, intervals, segment_by=request.segment_by),
            churn_trend=churn_trend(memberships, intervals, segment_by=request.segment_by),
            program_trend=mrr_trend(
                memberships,
                trailing_months(now, self.settings.program_trend_months),
                segment_by=SegmentDimension.PROGRAM_TYPE,
            ),
            growth=build_growth_series(intervals, records.clients, records.purchases),
            comparison=comparison,
            forecast=forecast,
        )

        published = self.gate.publish(ticket, result)
        logger.info(
            "dashboard_computed",
            ticket=ticket,
            published=published,
            granularity=intervals.granularity.value,
            buckets=len(intervals.buckets),
            mrr=summary.mrr.mrr,
            comparison=request.comparison_mode.value if request.comparison_mode else None,
        )
        return result

    def latest(self) -> Optional[DashboardResult]:
        """The most recently published dashboard, if any pass has completed."""
        return self.gate.latest

    def forecast(
        self, now: Optional[datetime] = None, periods: Optional[int] = None
    ) -> RevenueForecast:
        records = self.load_records()
        return self.forecaster.forecast(
            records.purchases,
            current_mrr=price_sum(currently_active(records.memberships)),
            now=now or datetime.utcnow(),
            periods=periods or self.settings.forecast_horizon_months,
        )

    def drill_down(
        self,
        kind: DrillDownKind,
        date_range: Optional[DateRange] = None,
        bucket_index: Optional[int] = None,
        slice_value: Optional[str] = None,
    ) -> DrillDownResult:
        """
        Records behind one chart point or categorical slice.

        Args:
            kind: What to select
            date_range: Range the chart was drawn for; buckets are regenerated
                from it so they match the chart exactly
            bucket_index: Position of the clicked bucket
            slice_value: Marketing status or purchase type

        Raises:
            RepositoryError: If records cannot be read
            InvalidRangeError: If the bucket cannot be located
        """
        bucket = None
        if bucket_index is not None:
            if date_range is None:
                raise InvalidRangeError("bucket_index requires a date range")
            buckets = generate_intervals(date_range).buckets
            if not 0 <= bucket_index < len(buckets):
                raise InvalidRangeError(
                    f"Bucket {bucket_index} is outside the range",
                    context={"bucket_count": len(buckets)},
                )
            bucket = buckets[bucket_index]

        records = self.load_records()
        return drill_down(
            kind,
            records.clients,
            records.purchases,
            bucket=bucket,
            slice_value=slice_value,
        )
