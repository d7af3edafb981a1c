"""
Revenue Forecast Engine.

Short-horizon projection of monthly revenue per category from purchase
history. Growth per category is a damped half-over-half average change over
the trailing months, clamped so a single noisy month cannot run away.

Membership revenue is additionally anchored to current MRR: subscription
charges can lag (or be missing from the purchase log entirely) while active
memberships still bill.
"""

from datetime import datetime
from typing import Optional, Sequence

import numpy as np
import structlog

from coachboard.models.analytics import (
    CategoryAmounts,
    ForecastMonth,
    ForecastSummary,
    RevenueForecast,
)
from coachboard.models.enums import RevenueCategory
from coachboard.models.records import PurchaseRecord
from coachboard.utils.dates import add_months, start_of_month

logger = structlog.get_logger()

DEFAULT_HISTORY_MONTHS = 12
DEFAULT_TRAILING_MONTHS = 6
DEFAULT_GROWTH = 0.02
GROWTH_FLOOR = -0.10
GROWTH_CEILING = 0.20

# Membership revenue below this is treated as absent from the purchase log.
NEAR_ZERO_REVENUE = 0.01
# Projected membership revenue may not sink below this share of current MRR.
MRR_ANCHOR_SHARE = 0.5

CATEGORIES = tuple(c.value for c in RevenueCategory)


def month_key(instant: datetime) -> str:
    return f"{instant:%Y-%m}"


def month_label(instant: datetime) -> str:
    return f"{instant:%b %Y}"


def estimate_growth(
    values: Sequence[float],
    default: float = DEFAULT_GROWTH,
    floor: float = GROWTH_FLOOR,
    ceiling: float = GROWTH_CEILING,
) -> float:
    """
    Monthly growth rate from a short series of monthly amounts.

    Months with no revenue are dropped. With fewer than two remaining months
    the default applies. Otherwise the first ``n // 2`` months form the earlier
    half and the rest the later half::

        growth = (later_avg - earlier_avg) / earlier_avg / (n / 2)

    clamped to ``[floor, ceiling]``.

    Args:
        values: Monthly amounts, oldest first
        default: Rate used when history is too sparse
        floor: Lowest allowed rate
        ceiling: Highest allowed rate

    Returns:
        Growth rate as a fraction (0.02 = 2% per month)
    """
    months = np.array([v for v in values if v > 0], dtype=float)
    months = months[np.isfinite(months)]
    n = len(months)
    if n < 2:
        return default

    # Growth is a ratio; scaling to the peak month keeps the means finite.
    months = months / months.max()
    split = n // 2
    earlier_avg = float(np.mean(months[:split]))
    later_avg = float(np.mean(months[split:]))
    if earlier_avg == 0:
        return default

    growth = (later_avg - earlier_avg) / earlier_avg / (n / 2)
    if not np.isfinite(growth):
        return default
    return float(np.clip(growth, floor, ceiling))


class RevenueForecaster:
    """
    Projects monthly revenue per category.

    Attributes:
        history_months: Calendar months of history, current month included
        trailing_months: Most recent history months used for growth
        default_growth: Growth used when history is too sparse
        growth_floor: Lower clamp for growth
        growth_ceiling: Upper clamp for growth
    """

    def __init__(
        self,
        history_months: int = DEFAULT_HISTORY_MONTHS,
        trailing_months: int = DEFAULT_TRAILING_MONTHS,
        default_growth: float = DEFAULT_GROWTH,
        growth_floor: float = GROWTH_FLOOR,
        growth_ceiling: float = GROWTH_CEILING,
    ):
        self.history_months = history_months
        self.trailing_months = trailing_months
        self.default_growth = default_growth
        self.growth_floor = growth_floor
        self.growth_ceiling = growth_ceiling

    def monthly_history(
        self, purchases: Sequence[PurchaseRecord], now: datetime
    ) -> list[ForecastMonth]:
        """Category totals for the trailing calendar months, oldest first."""
        first = add_months(start_of_month(now), -(self.history_months - 1))
        months = [add_months(first, i) for i in range(self.history_months)]
        amounts = {month_key(m): CategoryAmounts() for m in months}

        for p in purchases:
            bucket = amounts.get(month_key(p.purchased_at))
            if bucket is None:
                continue
            field = p.category.value
            setattr(bucket, field, getattr(bucket, field) + p.amount)

        return [
            ForecastMonth(
                month=month_key(m),
                label=month_label(m),
                total=amounts[month_key(m)].total,
                is_forecast=False,
                **amounts[month_key(m)].model_dump(),
            )
            for m in months
        ]

    def growth_rates(self, history: Sequence[ForecastMonth]) -> CategoryAmounts:
        recent = history[-self.trailing_months:]
        return CategoryAmounts(
            **{
                category: estimate_growth(
                    [getattr(m, category) for m in recent],
                    default=self.default_growth,
                    floor=self.growth_floor,
                    ceiling=self.growth_ceiling,
                )
                for category in CATEGORIES
            }
        )

    def project(
        self,
        history: Sequence[ForecastMonth],
        rates: CategoryAmounts,
        current_mrr: float,
        now: datetime,
        periods: int,
    ) -> list[ForecastMonth]:
        """
        Compound each category forward from the latest historical month.

        Membership starts from current MRR when the log shows (near) no
        membership revenue, and is re-anchored to ``current_mrr * (1 + g * i)``
        whenever it would drop below half of current MRR.
        """
        if history:
            last = history[-1]
            projected = {category: getattr(last, category) for category in CATEGORIES}
        else:
            projected = {category: 0.0 for category in CATEGORIES}

        membership = RevenueCategory.MEMBERSHIP.value
        if projected[membership] < NEAR_ZERO_REVENUE:
            projected[membership] = current_mrr

        forecast = []
        for i in range(1, periods + 1):
            month = add_months(now, i)
            for category in CATEGORIES:
                projected[category] *= 1 + getattr(rates, category)

            if projected[membership] < current_mrr * MRR_ANCHOR_SHARE:
                projected[membership] = current_mrr * (1 + rates.membership * i)

            forecast.append(
                ForecastMonth(
                    month=month_key(month),
                    label=month_label(month),
                    total=sum(projected.values()),
                    is_forecast=True,
                    **projected,
                )
            )
        return forecast

    def forecast(
        self,
        purchases: Sequence[PurchaseRecord],
        current_mrr: float,
        now: datetime,
        periods: int = 6,
        chart_history_months: Optional[int] = None,
    ) -> RevenueForecast:
        """
        Build the forecast.

        Args:
            purchases: All purchases
            current_mrr: MRR of currently active memberships
            now: Anchor; the current month is the last historical month
            periods: Number of projected months
            chart_history_months: Historical months prepended to the combined
                chart series (defaults to ``trailing_months``)

        Returns:
            RevenueForecast
        """
        history = self.monthly_history(purchases, now)
        rates = self.growth_rates(history)
        forecast = self.project(history, rates, current_mrr, now, periods)

        chart_months = chart_history_months or self.trailing_months
        combined = list(history[-chart_months:]) + forecast

        latest_total = history[-1].total if history else 0.0
        projected_end = forecast[-1].total if forecast else 0.0
        projected_growth = None
        if latest_total > 0:
            projected_growth = (projected_end - latest_total) / latest_total * 100

        summary = ForecastSummary(
            projected_monthly_end=projected_end,
            projected_growth=projected_growth,
            total_forecasted_revenue=sum(f.total for f in forecast),
            membership_forecast=sum(f.membership for f in forecast),
            supplement_forecast=sum(f.supplement for f in forecast),
            lab_testing_forecast=sum(f.lab_testing for f in forecast),
            service_forecast=sum(f.service for f in forecast),
        )

        logger.info(
            "forecast_computed",
            periods=periods,
            current_mrr=current_mrr,
            membership_growth=rates.membership,
            total_forecasted_revenue=summary.total_forecasted_revenue,
        )

        return RevenueForecast(
            current_mrr=current_mrr,
            growth_rates=rates,
            history=history,
            forecast=forecast,
            combined=combined,
            summary=summary,
        )
