"""Append-only history of creator metrics, used for growth and trend analytics."""

import logging
from datetime import datetime
from typing import NamedTuple

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.metric_sample import MetricSample
from services.credential_store import as_utc
from services.errors import StorageError

logger = logging.getLogger(__name__)

# Key under which the cross-platform revenue total is recorded
TOTAL_PLATFORM = "all"
TOTAL_IDENTIFIER = "total"
REVENUE_METRIC = "revenue"


class MetricPoint(NamedTuple):
    value: int
    recorded_at: datetime


class MetricHistoryStore:
    """Time-series storage of named metrics per (user, platform, identifier)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def record(
        self,
        user_id: str,
        platform_name: str,
        platform_identifier: str,
        metric_name: str,
        metric_value: int,
        recorded_at: datetime | None = None,
    ) -> None:
        """Append one sample.

        With an explicit ``recorded_at`` the write is idempotent: a sample at
        exactly that instant for the same key has its value overwritten.
        """
        if metric_value < 0:
            raise ValueError(f"metric_value must be non-negative, got {metric_value}")

        try:
            async with self._session_factory() as db:
                existing = None
                if recorded_at is not None:
                    result = await db.execute(
                        select(MetricSample).where(
                            MetricSample.user_id == user_id,
                            MetricSample.platform_name == platform_name,
                            MetricSample.platform_identifier == platform_identifier,
                            MetricSample.metric_name == metric_name,
                            MetricSample.recorded_at == recorded_at,
                        )
                    )
                    existing = result.scalar_one_or_none()

                if existing:
                    existing.metric_value = metric_value
                else:
                    sample = MetricSample(
                        user_id=user_id,
                        platform_name=platform_name,
                        platform_identifier=platform_identifier,
                        metric_name=metric_name,
                        metric_value=metric_value,
                    )
                    if recorded_at is not None:
                        sample.recorded_at = recorded_at
                    db.add(sample)

                await db.commit()
        except SQLAlchemyError as e:
            raise StorageError("Failed to store metric sample", str(e)) from e

    async def record_many(
        self,
        user_id: str,
        platform_name: str,
        platform_identifier: str,
        metrics: dict[str, int],
    ) -> int:
        """Append one sample per metric in a single transaction.

        Values that are not non-negative integers are skipped. Returns the
        number of samples written.
        """
        samples = [
            MetricSample(
                user_id=user_id,
                platform_name=platform_name,
                platform_identifier=platform_identifier,
                metric_name=name,
                metric_value=value,
            )
            for name, value in metrics.items()
            if isinstance(value, int) and not isinstance(value, bool) and value >= 0
        ]
        if not samples:
            return 0

        try:
            async with self._session_factory() as db:
                db.add_all(samples)
                await db.commit()
        except SQLAlchemyError as e:
            raise StorageError("Failed to store platform metrics", str(e)) from e
        return len(samples)

    async def record_total_revenue(self, user_id: str, total_revenue: int) -> None:
        await self.record(user_id, TOTAL_PLATFORM, TOTAL_IDENTIFIER, REVENUE_METRIC, total_revenue)

    async def history(
        self,
        user_id: str,
        platform_name: str,
        platform_identifier: str,
        metric_name: str,
        since: datetime,
    ) -> list[MetricPoint]:
        """Samples recorded at or after ``since``, oldest first."""
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(MetricSample.metric_value, MetricSample.recorded_at)
                    .where(
                        MetricSample.user_id == user_id,
                        MetricSample.platform_name == platform_name,
                        MetricSample.platform_identifier == platform_identifier,
                        MetricSample.metric_name == metric_name,
                        MetricSample.recorded_at >= since,
                    )
                    .order_by(MetricSample.recorded_at.asc(), MetricSample.id.asc())
                )
                return [MetricPoint(value, as_utc(recorded_at)) for value, recorded_at in result.all()]
        except SQLAlchemyError as e:
            raise StorageError("Failed to read metric history", str(e)) from e

    async def revenue_history(self, user_id: str, since: datetime) -> list[MetricPoint]:
        return await self.history(user_id, TOTAL_PLATFORM, TOTAL_IDENTIFIER, REVENUE_METRIC, since)

    async def purge_older_than(self, cutoff: datetime) -> int:
        """Delete every sample recorded before ``cutoff``. Returns rows removed."""
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    delete(MetricSample).where(MetricSample.recorded_at < cutoff)
                )
                await db.commit()
        except SQLAlchemyError as e:
            raise StorageError("Failed to purge metric history", str(e)) from e

        logger.info(f"Cleaned up {result.rowcount} old metric samples")
        return result.rowcount
