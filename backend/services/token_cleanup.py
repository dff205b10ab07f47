"""Periodic maintenance: expired-credential sweep and metric history retention."""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from schemas import CleanupReport
from services.clock import utcnow
from services.credential_manager import CredentialLifecycleManager, RefreshOutcome
from services.metric_history import MetricHistoryStore

logger = logging.getLogger(__name__)


class TokenCleanupJob:
    """Refresh-or-evict sweep over every stored credential.

    Runs independently of request-triggered refreshes; both go through the
    manager's per-key locks, so they never refresh the same key twice.
    """

    def __init__(
        self,
        manager: CredentialLifecycleManager,
        history: MetricHistoryStore,
        retention_days: int = 90,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.manager = manager
        self.history = history
        self.retention_days = retention_days
        self._clock = clock

    async def run(self) -> CleanupReport:
        """Sweep all credentials.

        A failure on one record is logged and the sweep moves on; only a
        failure to list the credentials aborts the run.
        """
        logger.info("Starting expired token cleanup...")
        report = CleanupReport()

        for user_id, platform in await self.manager.store.list_keys():
            report.checked += 1
            try:
                outcome = await self.manager.ensure_fresh(user_id, platform)
            except Exception as e:
                logger.error(f"Token cleanup failed for {platform} / user {user_id}: {e}")
                continue

            if outcome == RefreshOutcome.REFRESHED:
                report.refreshed += 1
            elif outcome == RefreshOutcome.EVICTED:
                report.removed += 1

        logger.info(
            f"Token cleanup completed: {report.checked} checked, "
            f"{report.refreshed} refreshed, {report.removed} removed"
        )
        return report

    async def cleanup_expired_tokens(self) -> int:
        """Run the sweep and return how many credentials were removed."""
        report = await self.run()
        return report.removed

    async def purge_history(self) -> int:
        """Delete metric samples older than the retention window."""
        cutoff = self._clock() - timedelta(days=self.retention_days)
        return await self.history.purge_older_than(cutoff)
