"""Shared data shapes passed between the credential, stats and analytics services."""

from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator


class TokenGrant(BaseModel):
    """Token response from a provider's authorization or refresh endpoint."""
    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None  # seconds
    scope: str | None = None
    token_type: str | None = None

    @field_validator("scope", mode="before")
    @classmethod
    def join_scope_list(cls, v: Any) -> Any:
        # Twitch returns scopes as a list, Google as a space-separated string
        if isinstance(v, list):
            return " ".join(str(s) for s in v)
        return v


class Credential(BaseModel):
    """Decrypted OAuth credential for one (user, platform) pair."""
    user_id: str
    platform: str
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None
    scope: str | None = None
    token_type: str | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        """A credential without an expiry never expires."""
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at

    def with_grant(self, grant: TokenGrant, now: datetime) -> "Credential":
        """Apply a refresh response, keeping the old refresh token if none was issued."""
        expires_at = (
            now + timedelta(seconds=grant.expires_in)
            if grant.expires_in
            else None
        )
        return self.model_copy(update={
            "access_token": grant.access_token,
            "refresh_token": grant.refresh_token or self.refresh_token,
            "expires_at": expires_at,
            "scope": grant.scope or self.scope,
            "token_type": grant.token_type or self.token_type,
        })


class PlatformRequest(BaseModel):
    """A platform account to fetch stats for."""
    name: str
    identifier: str


class PlatformSnapshot(BaseModel):
    """Metrics for one platform account at one point in time."""
    name: str
    identifier: str
    channel_name: str | None = None
    thumbnail_url: str | None = None
    followers: int = 0
    subscribers: int = 0
    views: int = 0
    viewers: int = 0
    revenue: int = 0
    growth: float = 0.0
    is_live: bool = False
    error: str | None = None
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def fallback(cls, request: PlatformRequest, reason: str) -> "PlatformSnapshot":
        """Zeroed snapshot standing in for a platform whose fetch failed."""
        return cls(name=request.name, identifier=request.identifier, error=reason)

    def history_metrics(self) -> dict[str, int]:
        """Metrics worth recording in the history table."""
        return {
            "followers": self.followers,
            "subscribers": self.subscribers,
            "views": self.views,
            "revenue": self.revenue,
        }

    @property
    def audience_metric(self) -> str:
        return "subscribers" if self.subscribers else "followers"

    @property
    def audience(self) -> int:
        return self.followers + self.subscribers


class PlatformShare(BaseModel):
    platform: str
    percentage: float


class AnalyticsReport(BaseModel):
    """Aggregated analytics across a creator's platforms."""
    total_revenue: int
    total_growth: float
    top_platform: str | None
    monthly_trend: list[int]
    platform_breakdown: list[PlatformShare]


class CleanupReport(BaseModel):
    """Outcome of one expired-credential sweep."""
    checked: int = 0
    refreshed: int = 0
    removed: int = 0
