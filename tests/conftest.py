"""
Pytest configuration and shared fixtures.

Unit tests run the services against in-memory fakes; integration tests use
the real SQLAlchemy stores on an in-memory SQLite database.
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from models import Base
from schemas import Credential, PlatformSnapshot, TokenGrant
from services.credential_manager import CredentialLifecycleManager
from services.errors import CredentialCorruptError
from services.metric_history import (
    REVENUE_METRIC,
    TOTAL_IDENTIFIER,
    TOTAL_PLATFORM,
    MetricPoint,
)
from services.providers.base import ProviderRegistry

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable replacement for ``datetime.now(timezone.utc)``."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeTimer:
    """Monotonic timer for TTL cache tests."""

    def __init__(self):
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class FakeProvider:
    """Scriptable provider recording every call."""

    def __init__(
        self,
        name: str,
        grant: TokenGrant | None = None,
        refresh_error: Exception | None = None,
        snapshot: PlatformSnapshot | None = None,
        stats_error: Exception | None = None,
        delay: float = 0,
    ):
        self.name = name
        self.grant = grant or TokenGrant(access_token="new-access", expires_in=3600)
        self.refresh_error = refresh_error
        self.snapshot = snapshot
        self.stats_error = stats_error
        self.delay = delay
        self.refresh_calls: list[str] = []
        self.fetch_calls: list[tuple[str, Credential | None]] = []

    async def refresh(self, refresh_token: str) -> TokenGrant:
        self.refresh_calls.append(refresh_token)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.refresh_error:
            raise self.refresh_error
        return self.grant

    async def fetch_stats(self, identifier: str, credential: Credential | None = None) -> PlatformSnapshot:
        self.fetch_calls.append((identifier, credential))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.stats_error:
            raise self.stats_error
        if self.snapshot:
            return self.snapshot.model_copy(update={"identifier": identifier})
        return PlatformSnapshot(name=self.name, identifier=identifier, followers=100, revenue=10)


class FakeCredentialStore:
    """Dict-backed CredentialStore."""

    def __init__(self):
        self.rows: dict[tuple[str, str], Credential] = {}
        self.corrupt: set[tuple[str, str]] = set()
        self.deleted: list[tuple[str, str]] = []

    async def get(self, user_id, platform):
        if (user_id, platform) in self.corrupt:
            raise CredentialCorruptError(user_id, platform, "bad padding")
        return self.rows.get((user_id, platform))

    async def save(self, credential):
        key = (credential.user_id, credential.platform)
        self.corrupt.discard(key)
        self.rows[key] = credential

    async def delete(self, user_id, platform):
        key = (user_id, platform)
        existed = key in self.rows or key in self.corrupt
        self.rows.pop(key, None)
        self.corrupt.discard(key)
        self.deleted.append(key)
        return existed

    async def list_keys(self):
        return sorted(set(self.rows) | self.corrupt)

    async def list_platforms(self, user_id):
        return sorted(p for u, p in await self.list_keys() if u == user_id)


class FakeHistoryStore:
    """List-backed MetricHistoryStore."""

    def __init__(self, clock: FakeClock | None = None):
        self.clock = clock or FakeClock()
        self.samples: dict[tuple[str, str, str, str], list[MetricPoint]] = {}
        self.fail_reads = False
        self.fail_writes = False

    def add(self, user_id, platform, identifier, metric, value, recorded_at):
        self.samples.setdefault((user_id, platform, identifier, metric), []).append(
            MetricPoint(value, recorded_at)
        )

    def add_revenue(self, user_id, value, recorded_at):
        self.add(user_id, TOTAL_PLATFORM, TOTAL_IDENTIFIER, REVENUE_METRIC, value, recorded_at)

    async def record(self, user_id, platform_name, platform_identifier, metric_name, metric_value, recorded_at=None):
        if self.fail_writes:
            raise RuntimeError("database is down")
        self.add(user_id, platform_name, platform_identifier, metric_name, metric_value,
                 recorded_at or self.clock())

    async def record_many(self, user_id, platform_name, platform_identifier, metrics):
        for name, value in metrics.items():
            await self.record(user_id, platform_name, platform_identifier, name, value)
        return len(metrics)

    async def record_total_revenue(self, user_id, total_revenue):
        await self.record(user_id, TOTAL_PLATFORM, TOTAL_IDENTIFIER, REVENUE_METRIC, total_revenue)

    async def history(self, user_id, platform_name, platform_identifier, metric_name, since):
        if self.fail_reads:
            raise RuntimeError("database is down")
        points = self.samples.get((user_id, platform_name, platform_identifier, metric_name), [])
        return sorted((p for p in points if p.recorded_at >= since), key=lambda p: p.recorded_at)

    async def revenue_history(self, user_id, since):
        return await self.history(user_id, TOTAL_PLATFORM, TOTAL_IDENTIFIER, REVENUE_METRIC, since)

    async def purge_older_than(self, cutoff):
        removed = 0
        for key, points in self.samples.items():
            kept = [p for p in points if p.recorded_at >= cutoff]
            removed += len(points) - len(kept)
            self.samples[key] = kept
        return removed


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture
def credential_store() -> FakeCredentialStore:
    return FakeCredentialStore()


@pytest.fixture
def history_store(clock) -> FakeHistoryStore:
    return FakeHistoryStore(clock)


@pytest.fixture
def youtube() -> FakeProvider:
    return FakeProvider("youtube")


@pytest.fixture
def registry(youtube) -> ProviderRegistry:
    registry = ProviderRegistry()
    registry.register(youtube)
    return registry


@pytest.fixture
def manager(credential_store, registry, clock) -> CredentialLifecycleManager:
    return CredentialLifecycleManager(credential_store, registry, clock=clock)


@pytest.fixture
def make_provider():
    """The FakeProvider class, for tests that script their own providers."""
    return FakeProvider


@pytest.fixture
def make_credential(clock):
    """Factory for credentials expiring relative to the test clock."""

    def factory(
        user_id: str = "user-1",
        platform: str = "youtube",
        expires_in: timedelta | None = timedelta(hours=1),
        refresh_token: str | None = "refresh-1",
    ) -> Credential:
        return Credential(
            user_id=user_id,
            platform=platform,
            access_token="access-1",
            refresh_token=refresh_token,
            expires_at=clock.now + expires_in if expires_in is not None else None,
            scope="read",
            token_type="Bearer",
        )

    return factory


@pytest.fixture
async def session_factory():
    """Session factory over a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()
