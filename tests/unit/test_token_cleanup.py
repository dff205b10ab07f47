"""
Tests for services.token_cleanup and services.scheduler modules.
"""
from datetime import timedelta

import pytest

from config import Settings
from services.errors import AuthError, StorageError
from services.scheduler import cleanup_expired_tokens, create_scheduler, purge_metric_history
from services.token_cleanup import TokenCleanupJob

EXPIRED = timedelta(minutes=-1)


@pytest.fixture
def job(manager, history_store, clock):
    return TokenCleanupJob(manager, history_store, retention_days=90, clock=clock)


class TestTokenCleanupJob:
    """Tests for the expired-credential sweep."""

    @pytest.mark.asyncio
    async def test_empty_store(self, job):
        report = await job.run()

        assert (report.checked, report.refreshed, report.removed) == (0, 0, 0)

    @pytest.mark.asyncio
    async def test_counts_outcomes(self, job, credential_store, make_credential):
        """Valid records are left alone, expired ones refreshed or evicted."""
        await credential_store.save(make_credential(user_id="a"))
        await credential_store.save(make_credential(user_id="b", expires_in=EXPIRED))
        await credential_store.save(make_credential(user_id="c", expires_in=EXPIRED, refresh_token=None))
        credential_store.corrupt.add(("d", "youtube"))

        report = await job.run()

        assert report.checked == 4
        assert report.refreshed == 1
        assert report.removed == 2
        assert await credential_store.list_keys() == [("a", "youtube"), ("b", "youtube")]

    @pytest.mark.asyncio
    async def test_revoked_refresh_token_is_removed(self, job, credential_store, make_credential, youtube):
        youtube.refresh_error = AuthError("invalid_grant", platform="youtube")
        await credential_store.save(make_credential(expires_in=EXPIRED))

        assert await job.cleanup_expired_tokens() == 1
        assert credential_store.rows == {}

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_sweep(self, job, credential_store, make_credential, monkeypatch):
        """An unexpected error on one record is logged and the sweep continues."""
        await credential_store.save(make_credential(user_id="a", expires_in=EXPIRED))
        await credential_store.save(make_credential(user_id="b", expires_in=EXPIRED))

        original_get = credential_store.get

        async def flaky_get(user_id, platform):
            if user_id == "a":
                raise StorageError("Failed to read credential", "connection reset")
            return await original_get(user_id, platform)

        monkeypatch.setattr(credential_store, "get", flaky_get)

        report = await job.run()

        assert report.checked == 2
        assert report.refreshed == 1
        assert ("a", "youtube") in credential_store.rows

    @pytest.mark.asyncio
    async def test_purge_history_uses_retention_window(self, job, history_store, clock):
        """Samples older than the retention window are deleted."""
        history_store.add("u", "youtube", "UC1", "subscribers", 10, clock.now - timedelta(days=91))
        history_store.add("u", "youtube", "UC1", "subscribers", 20, clock.now - timedelta(days=89))

        assert await job.purge_history() == 1
        points = history_store.samples[("u", "youtube", "UC1", "subscribers")]
        assert [p.value for p in points] == [20]


class TestScheduler:
    """Tests for the periodic job wiring."""

    def test_jobs_registered(self, job):
        settings = Settings(token_cleanup_interval_minutes=15, history_cleanup_interval_hours=12)

        scheduler = create_scheduler(job, settings)

        job_ids = {j.id for j in scheduler.get_jobs()}
        assert job_ids == {"token_cleanup", "history_cleanup"}

    @pytest.mark.asyncio
    async def test_job_errors_are_contained(self, job, monkeypatch):
        """A failing run is logged, never raised into the scheduler."""

        async def boom():
            raise StorageError("Failed to list credentials")

        monkeypatch.setattr(job, "run", boom)
        monkeypatch.setattr(job, "purge_history", boom)

        await cleanup_expired_tokens(job)
        await purge_metric_history(job)
