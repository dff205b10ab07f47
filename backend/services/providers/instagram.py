"""Instagram provider - long-lived token refresh and Graph API stats.

Instagram has no separate refresh token: a long-lived access token is
exchanged for a new one, so credentials store the access token in both
fields.
"""

import logging

import httpx

from schemas import Credential, PlatformSnapshot, TokenGrant
from services.errors import AuthError, ProviderDataError
from services.providers.base import HttpProvider

logger = logging.getLogger(__name__)

GRAPH_API_BASE = "https://graph.instagram.com"


def estimate_revenue(followers: int, engagement: int) -> int:
    """$0.008 per follower plus $0.50 per 100 likes and comments."""
    return round(followers * 0.008 + (engagement / 100) * 0.5)


class InstagramProvider(HttpProvider):
    """Instagram Graph API client.

    Without a creator credential the server's configured access token is
    used; with neither, lookups fail with AuthError.
    """

    name = "instagram"

    def __init__(
        self,
        access_token: str = "",
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self.access_token = access_token

    async def refresh(self, refresh_token: str) -> TokenGrant:
        grant = await self._request_token(
            f"{GRAPH_API_BASE}/refresh_access_token",
            params={"grant_type": "ig_refresh_token", "access_token": refresh_token},
        )
        # The new long-lived token is also what the next refresh exchanges
        grant = grant.model_copy(update={"refresh_token": grant.refresh_token or grant.access_token})
        logger.info("Instagram token refreshed")
        return grant

    async def _follower_count(self, client: httpx.AsyncClient, user_id: str, token: str) -> int:
        # followers_count needs a business or creator account
        try:
            data = await self._get_json(
                client, f"{GRAPH_API_BASE}/{user_id}", params={"fields": "followers_count", "access_token": token}
            )
        except (AuthError, ProviderDataError) as e:
            logger.warning(f"Instagram follower count unavailable for {user_id}: {e}")
            return 0
        return int(data.get("followers_count") or 0)

    async def fetch_stats(
        self, identifier: str, credential: Credential | None = None
    ) -> PlatformSnapshot:
        token = credential.access_token if credential else self.access_token
        if not token:
            raise AuthError("Instagram access token not configured", platform=self.name)

        async with self._client() as client:
            user = await self._get_json(
                client,
                f"{GRAPH_API_BASE}/me",
                params={"fields": "id,username,account_type,media_count", "access_token": token},
            )
            if not user.get("id"):
                raise ProviderDataError(f"Instagram account {identifier} not found", platform=self.name)

            media = await self._get_json(
                client,
                f"{GRAPH_API_BASE}/me/media",
                params={"fields": "id,like_count,comments_count", "access_token": token},
            )
            followers = await self._follower_count(client, user["id"], token)

        posts = media.get("data") or []
        engagement = sum(
            int(post.get("like_count") or 0) + int(post.get("comments_count") or 0) for post in posts
        )

        snapshot = PlatformSnapshot(
            name=self.name,
            identifier=identifier,
            channel_name=user.get("username"),
            followers=followers,
            revenue=estimate_revenue(followers, engagement),
        )
        logger.info(
            f"Instagram stats fetched for {snapshot.channel_name}: "
            f"{snapshot.followers} followers, {engagement} engagements"
        )
        return snapshot
