"""Service wiring. One container per process, built and torn down by the app lifespan."""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import Settings
from services.analytics_service import AnalyticsService
from services.credential_manager import CredentialLifecycleManager
from services.credential_store import CredentialStore
from services.growth_analytics import GrowthAnalyticsEngine
from services.metric_history import MetricHistoryStore
from services.providers import ProviderRegistry, build_registry
from services.stats_cache import StatsCache
from services.token_cipher import TokenCipher
from services.token_cleanup import TokenCleanupJob


@dataclass
class ServiceContainer:
    registry: ProviderRegistry
    credentials: CredentialLifecycleManager
    history: MetricHistoryStore
    stats_cache: StatsCache
    analytics: AnalyticsService
    cleanup: TokenCleanupJob


def build_container(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    registry: ProviderRegistry | None = None,
) -> ServiceContainer:
    registry = registry or build_registry(settings)

    store = CredentialStore(session_factory, TokenCipher(settings.credential_encryption_key))
    history = MetricHistoryStore(session_factory)

    manager = CredentialLifecycleManager(
        store,
        registry,
        evict_on_transient_refresh_failure=settings.evict_on_transient_refresh_failure,
    )
    stats_cache = StatsCache(
        manager,
        registry,
        ttl_seconds=settings.stats_cache_ttl_seconds,
        maxsize=settings.stats_cache_maxsize,
    )
    engine = GrowthAnalyticsEngine(
        history,
        lookback_days=settings.growth_lookback_days,
        trend_months=settings.trend_months,
    )

    return ServiceContainer(
        registry=registry,
        credentials=manager,
        history=history,
        stats_cache=stats_cache,
        analytics=AnalyticsService(stats_cache, engine, history),
        cleanup=TokenCleanupJob(manager, history, retention_days=settings.history_retention_days),
    )
