"""MetricSample model - stores per-creator metrics over time for growth analysis."""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class MetricSample(Base):
    """Point-in-time value of one creator metric.

    Append-only table. Rows are only rewritten when a backfill supplies an
    explicit ``recorded_at`` that matches an existing row exactly.
    """

    __tablename__ = "metric_samples"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "platform_name", "platform_identifier", "metric_name", "recorded_at",
            name="uq_metric_samples_key",
        ),
        Index("ix_metric_samples_user_platform", "user_id", "platform_name"),
        Index("ix_metric_samples_platform_metric", "platform_name", "metric_name"),
        Index("ix_metric_samples_recorded_at", "recorded_at"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    platform_name: Mapped[str] = mapped_column(String(50), nullable=False)
    platform_identifier: Mapped[str] = mapped_column(String(255), nullable=False)
    metric_name: Mapped[str] = mapped_column(String(50), nullable=False)
    metric_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<MetricSample {self.platform_name}/{self.platform_identifier}."
            f"{self.metric_name}={self.metric_value}>"
        )
