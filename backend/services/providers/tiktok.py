"""TikTok provider - OAuth refresh and TikTok API v2 stats.

The user info and video list endpoints describe the account that owns the
access token; ``identifier`` only labels the snapshot.
"""

import logging

import httpx

from schemas import Credential, PlatformSnapshot, TokenGrant
from services.errors import ProviderDataError
from services.providers.base import HttpProvider

logger = logging.getLogger(__name__)

TIKTOK_TOKEN_URL = "https://open.tiktokapis.com/v2/oauth/token/"
TIKTOK_API_BASE = "https://open.tiktokapis.com/v2"

USER_FIELDS = "open_id,display_name,avatar_url,follower_count"
VIDEO_FIELDS = "id,view_count,like_count"


def estimate_revenue(followers: int, views: int) -> int:
    """$0.005 per follower plus $0.50 per 1000 recent views."""
    return round(followers * 0.005 + (views / 1000) * 0.5)


class TikTokProvider(HttpProvider):
    """TikTok OAuth + API v2 client."""

    name = "tiktok"

    def __init__(
        self,
        client_key: str,
        client_secret: str,
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self.client_key = client_key
        self.client_secret = client_secret

    async def refresh(self, refresh_token: str) -> TokenGrant:
        grant = await self._request_token(
            TIKTOK_TOKEN_URL,
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_key": self.client_key,
                "client_secret": self.client_secret,
            },
        )
        logger.info("TikTok token refreshed")
        return grant

    async def fetch_stats(
        self, identifier: str, credential: Credential | None = None
    ) -> PlatformSnapshot:
        token = credential.access_token if credential else await self._get_app_token(
            TIKTOK_TOKEN_URL,
            {"grant_type": "client_credentials", "client_key": self.client_key, "client_secret": self.client_secret},
        )
        headers = {"Authorization": f"Bearer {token}"}

        async with self._client() as client:
            info = await self._get_json(
                client, f"{TIKTOK_API_BASE}/user/info/", params={"fields": USER_FIELDS}, headers=headers
            )
            user = (info.get("data") or {}).get("user")
            if not user:
                raise ProviderDataError(f"TikTok user {identifier} not found", platform=self.name)

            video_list = await self._get_json(
                client, f"{TIKTOK_API_BASE}/video/list/", params={"fields": VIDEO_FIELDS}, headers=headers
            )

        videos = (video_list.get("data") or {}).get("videos") or []
        followers = int(user.get("follower_count") or 0)
        views = sum(int(video.get("view_count") or 0) for video in videos)

        snapshot = PlatformSnapshot(
            name=self.name,
            identifier=identifier,
            channel_name=user.get("display_name"),
            thumbnail_url=user.get("avatar_url"),
            followers=followers,
            views=views,
            revenue=estimate_revenue(followers, views),
        )
        logger.info(
            f"TikTok stats fetched for {snapshot.channel_name}: "
            f"{snapshot.followers} followers, {snapshot.views} recent views"
        )
        return snapshot
