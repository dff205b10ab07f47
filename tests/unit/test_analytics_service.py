"""
Tests for services.analytics_service module.
"""
import random
from datetime import timedelta

import pytest

from schemas import PlatformRequest, PlatformSnapshot
from services.analytics_service import AnalyticsService
from services.errors import TransientProviderError
from services.growth_analytics import GrowthAnalyticsEngine
from services.metric_history import REVENUE_METRIC, TOTAL_IDENTIFIER, TOTAL_PLATFORM
from services.stats_cache import StatsCache


def snapshot(name, **metrics):
    return PlatformSnapshot(name=name, identifier=f"{name}-id", **metrics)


@pytest.fixture
def cache(manager, registry, timer):
    return StatsCache(manager, registry, timer=timer)


@pytest.fixture
def service(cache, history_store, clock):
    engine = GrowthAnalyticsEngine(history_store, rng=random.Random(3), clock=clock)
    return AnalyticsService(cache, engine, history_store)


class TestGetAllPlatformStats:
    """Tests for AnalyticsService.get_all_platform_stats."""

    @pytest.mark.asyncio
    async def test_anonymous_lookup_records_nothing(self, service, history_store):
        snapshots = await service.get_all_platform_stats([PlatformRequest(name="youtube", identifier="UC1")])

        assert len(snapshots) == 1
        assert snapshots[0].growth == 0.0
        assert history_store.samples == {}

    @pytest.mark.asyncio
    async def test_growth_from_history_then_recorded(self, service, youtube, history_store, clock):
        """Growth is computed against prior samples before the new sample is stored."""
        youtube.snapshot = snapshot("youtube", subscribers=1200, views=5000, revenue=18)
        history_store.add("user-1", "youtube", "UC1", "subscribers", 1000, clock.now - timedelta(days=7))

        [result] = await service.get_all_platform_stats(
            [PlatformRequest(name="youtube", identifier="UC1")], user_id="user-1"
        )

        assert result.growth == 20.0
        recorded = history_store.samples[("user-1", "youtube", "UC1", "subscribers")]
        assert [p.value for p in recorded] == [1000, 1200]
        assert history_store.samples[("user-1", "youtube", "UC1", "revenue")][0].value == 18

    @pytest.mark.asyncio
    async def test_followers_used_when_no_subscribers(self, service, youtube, history_store, clock):
        youtube.snapshot = snapshot("youtube", followers=150)
        history_store.add("user-1", "youtube", "UC1", "followers", 100, clock.now - timedelta(days=3))

        [result] = await service.get_all_platform_stats(
            [PlatformRequest(name="youtube", identifier="UC1")], user_id="user-1"
        )

        assert result.growth == 50.0

    @pytest.mark.asyncio
    async def test_failed_platform_is_not_recorded(self, service, youtube, history_store):
        youtube.stats_error = TransientProviderError("timeout", platform="youtube")

        [result] = await service.get_all_platform_stats(
            [PlatformRequest(name="youtube", identifier="UC1")], user_id="user-1"
        )

        assert result.error is not None
        assert history_store.samples == {}

    @pytest.mark.asyncio
    async def test_history_write_failure_is_swallowed(self, service, history_store):
        history_store.fail_writes = True

        [result] = await service.get_all_platform_stats(
            [PlatformRequest(name="youtube", identifier="UC1")], user_id="user-1"
        )

        assert result.error is None
        assert result.followers == 100

    @pytest.mark.asyncio
    async def test_cache_hits_are_recorded_once(self, service, youtube, history_store, timer, clock):
        """Polling within the cache TTL does not duplicate history samples."""
        requests = [PlatformRequest(name="youtube", identifier="UC1")]
        youtube.snapshot = snapshot("youtube", subscribers=100, fetched_at=clock.now)

        await service.get_all_platform_stats(requests, user_id="user-1")
        await service.get_all_platform_stats(requests, user_id="user-1")

        recorded = history_store.samples[("user-1", "youtube", "UC1", "subscribers")]
        assert [p.value for p in recorded] == [100]
        assert len(youtube.fetch_calls) == 1

        timer.advance(301)
        clock.advance(seconds=301)
        youtube.snapshot = snapshot("youtube", subscribers=110, fetched_at=clock.now)
        await service.get_all_platform_stats(requests, user_id="user-1")

        assert [p.value for p in recorded] == [100, 110]

    @pytest.mark.asyncio
    async def test_failed_write_is_retried_on_next_request(self, service, history_store):
        requests = [PlatformRequest(name="youtube", identifier="UC1")]
        history_store.fail_writes = True
        await service.get_all_platform_stats(requests, user_id="user-1")

        history_store.fail_writes = False
        await service.get_all_platform_stats(requests, user_id="user-1")

        assert len(history_store.samples[("user-1", "youtube", "UC1", "followers")]) == 1

    @pytest.mark.asyncio
    async def test_cached_snapshot_not_mutated(self, service, cache, youtube, history_store, clock):
        """Growth is applied to a copy; the shared cache entry keeps its own value."""
        youtube.snapshot = snapshot("youtube", subscribers=200)
        history_store.add("user-1", "youtube", "UC1", "subscribers", 100, clock.now - timedelta(days=1))

        [result] = await service.get_all_platform_stats(
            [PlatformRequest(name="youtube", identifier="UC1")], user_id="user-1"
        )
        cached = await cache.get_stats("youtube", "UC1", user_id="user-1")

        assert result.growth == 100.0
        assert cached.growth == 0.0


class TestBuildReport:
    """Tests for AnalyticsService.build_report."""

    @pytest.mark.asyncio
    async def test_revenue_breakdown(self, service):
        """A=100, B=300 -> 25/75 split with B on top."""
        report = await service.build_report([snapshot("A", revenue=100), snapshot("B", revenue=300)])

        assert report.total_revenue == 400
        assert [(s.platform, s.percentage) for s in report.platform_breakdown] == [("A", 25.0), ("B", 75.0)]
        assert report.top_platform == "B"

    @pytest.mark.asyncio
    async def test_audience_basis_without_revenue(self, service):
        """With no revenue at all the split is by followers + subscribers."""
        report = await service.build_report([
            snapshot("youtube", subscribers=300),
            snapshot("twitch", followers=100),
        ])

        assert report.total_revenue == 0
        assert [s.percentage for s in report.platform_breakdown] == [75.0, 25.0]
        assert report.top_platform == "youtube"
        assert report.monthly_trend == [0, 0, 0, 0, 0, 0]

    @pytest.mark.asyncio
    async def test_breakdown_sums_to_about_100(self, service):
        report = await service.build_report([
            snapshot("a", revenue=1), snapshot("b", revenue=1), snapshot("c", revenue=1),
        ])

        assert abs(sum(s.percentage for s in report.platform_breakdown) - 100) <= 0.5

    @pytest.mark.asyncio
    async def test_all_zero_basis(self, service):
        report = await service.build_report([snapshot("a"), snapshot("b")])

        assert [s.percentage for s in report.platform_breakdown] == [0.0, 0.0]

    @pytest.mark.asyncio
    async def test_empty_snapshots(self, service):
        report = await service.build_report([])

        assert report.total_revenue == 0
        assert report.top_platform is None
        assert report.platform_breakdown == []
        assert len(report.monthly_trend) == 6

    @pytest.mark.asyncio
    async def test_tie_goes_to_first_platform(self, service):
        report = await service.build_report([snapshot("a", revenue=50), snapshot("b", revenue=50)])

        assert report.top_platform == "a"

    @pytest.mark.asyncio
    async def test_total_growth_averages_positive_rates_only(self, service):
        report = await service.build_report([
            snapshot("a", growth=10.0),
            snapshot("b", growth=5.25),
            snapshot("c", growth=-8.0),
            snapshot("d", growth=0.0),
        ])

        assert report.total_growth == 7.6

    @pytest.mark.asyncio
    async def test_no_positive_growth(self, service):
        report = await service.build_report([snapshot("a", growth=-3.0)])

        assert report.total_growth == 0.0

    @pytest.mark.asyncio
    async def test_total_revenue_recorded_for_user(self, service, history_store):
        report = await service.build_report([snapshot("a", revenue=120)], user_id="user-1")

        points = history_store.samples[("user-1", TOTAL_PLATFORM, TOTAL_IDENTIFIER, REVENUE_METRIC)]
        assert [p.value for p in points] == [120]
        # The sample just written is this month's only data point
        assert report.monthly_trend == [120] * 6

    @pytest.mark.asyncio
    async def test_zero_revenue_not_recorded(self, service, history_store):
        await service.build_report([snapshot("a", followers=10)], user_id="user-1")

        assert history_store.samples == {}

    @pytest.mark.asyncio
    async def test_revenue_write_failure_does_not_fail_report(self, service, history_store):
        history_store.fail_writes = True

        report = await service.build_report([snapshot("a", revenue=120)], user_id="user-1")

        assert report.total_revenue == 120
        assert report.monthly_trend[-1] == 120

    @pytest.mark.asyncio
    async def test_invalidate_cache(self, service, youtube):
        await service.get_all_platform_stats([PlatformRequest(name="youtube", identifier="UC1")])
        service.invalidate_cache()
        await service.get_all_platform_stats([PlatformRequest(name="youtube", identifier="UC1")])

        assert len(youtube.fetch_calls) == 2
