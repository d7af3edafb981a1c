"""
Analytics router: dashboard, forecast and drill-down for the console.

Wired to:
- AnalyticsService for every pass (repository read + engine)
"""

from datetime import date, datetime
from functools import lru_cache
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ValidationError

from coachboard.config import get_settings
from coachboard.exceptions import InvalidRangeError, RepositoryError
from coachboard.models.analytics import AnalyticsRequest, DateRange
from coachboard.models.enums import ComparisonMode, DrillDownKind, SegmentDimension
from coachboard.services.analytics_service import AnalyticsService
from coachboard.storage import get_repository
from coachboard.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()

MONEY_DECIMALS = 2


@lru_cache
def get_analytics_service() -> AnalyticsService:
    """Process-wide service, so ``/dashboard/latest`` sees earlier passes."""
    return AnalyticsService(repository=get_repository(), settings=get_settings())


def round_output(value: Any) -> Any:
    """Round every float in a JSON-ready structure to cents."""
    if isinstance(value, float):
        return round(value, MONEY_DECIMALS)
    if isinstance(value, dict):
        return {k: round_output(v) for k, v in value.items()}
    if isinstance(value, list):
        return [round_output(v) for v in value]
    return value


def envelope(model: BaseModel) -> dict:
    data = model.model_dump(mode="json", by_alias=True, exclude_none=True)
    return {"success": True, "data": round_output(data)}


def _date_range(start: Optional[date], end: Optional[date]) -> Optional[DateRange]:
    if start is None and end is None:
        return None
    if start is None or end is None:
        raise HTTPException(status_code=422, detail="Both 'from' and 'to' are required")
    try:
        return DateRange(from_=start, to=end)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False)[0]["msg"])


def _no_data(e: RepositoryError) -> HTTPException:
    logger.warning("analytics_no_data", error=e.message, context=e.context)
    return HTTPException(status_code=503, detail=e.message)


@router.get("/dashboard")
async def get_dashboard(
    start: date = Query(..., alias="from", description="Range start (inclusive)"),
    end: date = Query(..., alias="to", description="Range end (inclusive)"),
    comparison: Optional[ComparisonMode] = Query(None, description="Comparison mode"),
    compare_from: Optional[date] = Query(None, description="Custom comparison start"),
    compare_to: Optional[date] = Query(None, description="Custom comparison end"),
    forecast_months: int = Query(6, ge=1, le=36),
    segment_by: Optional[SegmentDimension] = Query(None),
    now: Optional[datetime] = Query(None, description="Anchor for current metrics"),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """
    Full analytics pass: summary, trends, program breakdown, comparison and
    forecast for the requested range.
    """
    logger.info(
        "dashboard_requested",
        start=start.isoformat(),
        end=end.isoformat(),
        comparison=comparison.value if comparison else None,
    )

    date_range = _date_range(start, end)
    comparison_range = _date_range(compare_from, compare_to)

    params: dict[str, Any] = {
        "date_range": date_range,
        "comparison_mode": comparison,
        "comparison_range": comparison_range,
        "forecast_months": forecast_months,
        "segment_by": segment_by,
    }
    if now is not None:
        params["now"] = now

    try:
        request = AnalyticsRequest(**params)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False)[0]["msg"])

    try:
        result = service.compute_dashboard(request)
    except RepositoryError as e:
        raise _no_data(e)
    except InvalidRangeError as e:
        raise HTTPException(status_code=422, detail=e.message)

    return envelope(result)


@router.get("/dashboard/latest")
async def get_latest_dashboard(
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Most recently published dashboard pass."""
    result = service.latest()
    if result is None:
        raise HTTPException(status_code=404, detail="No dashboard computed yet")
    return envelope(result)


@router.get("/forecast")
async def get_forecast(
    months: Optional[int] = Query(None, ge=1, le=36, description="Forecast periods"),
    now: Optional[datetime] = Query(None),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Revenue forecast per category."""
    logger.info("forecast_requested", months=months)

    try:
        forecast = service.forecast(now=now, periods=months)
    except RepositoryError as e:
        raise _no_data(e)

    return envelope(forecast)


@router.get("/drilldown")
async def get_drilldown(
    kind: DrillDownKind = Query(...),
    start: Optional[date] = Query(None, alias="from"),
    end: Optional[date] = Query(None, alias="to"),
    bucket: Optional[int] = Query(None, ge=0, description="Index of the chart bucket"),
    value: Optional[str] = Query(None, description="Marketing status or purchase type"),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Records underlying one chart point or categorical slice."""
    logger.info("drilldown_requested", kind=kind.value, bucket=bucket, value=value)

    date_range = _date_range(start, end)

    try:
        result = service.drill_down(
            kind, date_range=date_range, bucket_index=bucket, slice_value=value
        )
    except RepositoryError as e:
        raise _no_data(e)
    except InvalidRangeError as e:
        raise HTTPException(status_code=422, detail=e.message)

    return envelope(result)
