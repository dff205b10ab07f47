"""Analytics orchestrator - combines cached platform snapshots with history-based growth."""

import asyncio
import logging

from cachetools import LRUCache

from schemas import AnalyticsReport, PlatformRequest, PlatformShare, PlatformSnapshot
from services.growth_analytics import GrowthAnalyticsEngine
from services.metric_history import MetricHistoryStore
from services.stats_cache import StatsCache

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Builds per-platform snapshots and the cross-platform analytics report."""

    def __init__(
        self,
        stats_cache: StatsCache,
        engine: GrowthAnalyticsEngine,
        history: MetricHistoryStore,
        recorded_maxsize: int = 4096,
    ):
        self.stats_cache = stats_cache
        self.engine = engine
        self.history = history
        # fetched_at of the last snapshot recorded per (user, platform, identifier)
        self._recorded: LRUCache = LRUCache(maxsize=recorded_maxsize)

    async def get_all_platform_stats(
        self, requests: list[PlatformRequest], user_id: str | None = None
    ) -> list[PlatformSnapshot]:
        """Snapshots for every requested platform, one per request.

        For a signed-in creator each successful snapshot gets its growth rate
        from history. A snapshot is recorded as a history sample once, when it
        is first seen after a fetch; cache hits add no samples.
        """
        snapshots = await self.stats_cache.get_all_stats(requests, user_id)
        if not user_id:
            return snapshots
        return list(await asyncio.gather(
            *(self._with_growth(snapshot, user_id) for snapshot in snapshots)
        ))

    async def _with_growth(self, snapshot: PlatformSnapshot, user_id: str) -> PlatformSnapshot:
        if snapshot.error:
            return snapshot

        metric = snapshot.audience_metric
        growth = await self.engine.growth_rate(
            user_id, snapshot.name, snapshot.identifier, metric, getattr(snapshot, metric)
        )

        key = (user_id, snapshot.name, snapshot.identifier)
        if self._recorded.get(key) != snapshot.fetched_at:
            try:
                await self.history.record_many(
                    user_id, snapshot.name, snapshot.identifier, snapshot.history_metrics()
                )
                self._recorded[key] = snapshot.fetched_at
            except Exception as e:
                logger.warning(f"Could not record {snapshot.name} metrics for user {user_id}: {e}")

        # Cached snapshots are shared between callers; never mutate them
        return snapshot.model_copy(update={"growth": growth})

    async def build_report(
        self, snapshots: list[PlatformSnapshot], user_id: str | None = None
    ) -> AnalyticsReport:
        """Aggregate platform snapshots into one report.

        Shares and the top platform are by revenue, or by audience
        (followers + subscribers) when there is no revenue at all.
        """
        total_revenue = sum(s.revenue for s in snapshots)

        growth_rates = [s.growth for s in snapshots if s.growth > 0]
        total_growth = round(sum(growth_rates) / len(growth_rates), 1) if growth_rates else 0.0

        if total_revenue > 0 and user_id:
            try:
                await self.history.record_total_revenue(user_id, total_revenue)
            except Exception as e:
                logger.warning(f"Could not record total revenue for user {user_id}: {e}")

        if total_revenue > 0:
            basis = [s.revenue for s in snapshots]
        else:
            basis = [s.audience for s in snapshots]
        basis_total = sum(basis)

        breakdown = [
            PlatformShare(
                platform=s.name,
                percentage=round(value / basis_total * 100, 1) if basis_total else 0.0,
            )
            for s, value in zip(snapshots, basis)
        ]

        top_platform = None
        top_value = -1
        for s, value in zip(snapshots, basis):
            if value > top_value:
                top_platform, top_value = s.name, value

        if user_id:
            monthly_trend = await self.engine.revenue_trend(user_id, total_revenue)
        else:
            monthly_trend = self.engine.synthesize_trend(total_revenue)

        return AnalyticsReport(
            total_revenue=total_revenue,
            total_growth=total_growth,
            top_platform=top_platform,
            monthly_trend=monthly_trend,
            platform_breakdown=breakdown,
        )

    def invalidate_cache(self) -> None:
        self.stats_cache.invalidate_all()
