"""Growth rate and monthly revenue trend derived from metric history.

History is sparse and irregular: a creator's stats are only sampled when
they are fetched. Growth compares against the oldest sample in a lookback
window; the trend averages samples per calendar month and fills the gaps by
time-weighted interpolation.
"""

import logging
import math
import random
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from services.clock import utcnow
from services.metric_history import MetricHistoryStore, MetricPoint

logger = logging.getLogger(__name__)

Month = tuple[int, int]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def shift_month(month: Month, delta: int) -> Month:
    index = month[0] * 12 + (month[1] - 1) + delta
    return index // 12, index % 12 + 1


def month_start(month: Month) -> datetime:
    return datetime(month[0], month[1], 1, tzinfo=timezone.utc)


def monthly_averages(points: list[MetricPoint]) -> dict[Month, int]:
    """Average sample value per calendar month (UTC)."""
    buckets: dict[Month, list[int]] = defaultdict(list)
    for point in points:
        recorded = point.recorded_at.astimezone(timezone.utc)
        buckets[(recorded.year, recorded.month)].append(point.value)
    return {
        month: round_half_up(sum(values) / len(values))
        for month, values in buckets.items()
    }


def interpolate_month(known: dict[Month, int], target: Month) -> int:
    """Value for a month with no samples.

    Linear between the nearest known months on either side, weighted by
    elapsed time; the nearest neighbour's value when only one side exists.
    """
    before = max((m for m in known if m < target), default=None)
    after = min((m for m in known if m > target), default=None)

    if before is None and after is None:
        return 0
    if before is None:
        return known[after]
    if after is None:
        return known[before]

    start, end = month_start(before), month_start(after)
    ratio = (month_start(target) - start) / (end - start)
    return round_half_up(known[before] + (known[after] - known[before]) * ratio)


class GrowthAnalyticsEngine:
    """Computes growth percentages and revenue trends from MetricHistoryStore."""

    def __init__(
        self,
        history: MetricHistoryStore,
        lookback_days: int = 30,
        trend_months: int = 6,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.history = history
        self.lookback_days = lookback_days
        self.trend_months = trend_months
        self._rng = rng or random.Random()
        self._clock = clock

    async def growth_rate(
        self,
        user_id: str,
        platform: str,
        identifier: str,
        metric_name: str,
        current_value: int,
    ) -> float:
        """Percent change from the oldest sample in the lookback window.

        0 when there is no history, the oldest value is 0, or nothing changed.
        """
        since = self._clock() - timedelta(days=self.lookback_days)
        try:
            points = await self.history.history(user_id, platform, identifier, metric_name, since)
        except Exception as e:
            logger.error(f"Error calculating growth rate for {platform}/{identifier}: {e}")
            return 0.0

        if not points:
            return 0.0
        oldest = points[0].value
        if oldest == 0 or oldest == current_value:
            return 0.0
        return round(((current_value - oldest) / oldest) * 100, 2)

    async def revenue_trend(self, user_id: str, current_total_revenue: int) -> list[int]:
        """Monthly revenue for the trailing months, oldest first."""
        now = self._clock()
        this_month = (now.year, now.month)
        since = month_start(shift_month(this_month, -self.trend_months))

        try:
            points = await self.history.revenue_history(user_id, since)
        except Exception as e:
            logger.error(f"Error calculating revenue trend for user {user_id}: {e}")
            return self.synthesize_trend(current_total_revenue)

        if not points:
            return self.synthesize_trend(current_total_revenue)

        known = monthly_averages(points)
        trend = []
        for offset in range(self.trend_months - 1, -1, -1):
            month = shift_month(this_month, -offset)
            if month in known:
                trend.append(known[month])
            else:
                trend.append(interpolate_month(known, month))
        return trend

    def synthesize_trend(self, current_revenue: int) -> list[int]:
        """Plausible trend ending at ``current_revenue`` when there is no history.

        Starts at 85% of current, drifts by 95-105% per month within
        60-120% of current, and ends exactly on current.
        """
        if current_revenue == 0:
            return [0] * self.trend_months

        low, high = current_revenue * 0.6, current_revenue * 1.2
        value = current_revenue * 0.85
        trend = []
        for _ in range(self.trend_months - 1):
            value = min(max(value * self._rng.uniform(0.95, 1.05), low), high)
            trend.append(round_half_up(value))
        trend.append(current_revenue)
        return trend
