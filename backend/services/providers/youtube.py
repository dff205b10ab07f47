"""YouTube provider - Google OAuth refresh and YouTube Data API v3 stats.

Stats are fetched with the creator's OAuth token when one is stored,
otherwise with the server API key (public channel data only).
"""

import logging

import httpx

from schemas import Credential, PlatformSnapshot, TokenGrant
from services.errors import ProviderDataError
from services.providers.base import HttpProvider

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
YT_API_BASE = "https://www.googleapis.com/youtube/v3"

# YouTube exposes no revenue API; estimate from views at a flat CPM.
ESTIMATED_CPM = 3.5


def estimate_revenue(views: int) -> int:
    return round((views / 1000) * ESTIMATED_CPM)


class YouTubeProvider(HttpProvider):
    """Google OAuth + YouTube Data API client."""

    name = "youtube"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        api_key: str = "",
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_key = api_key

    async def refresh(self, refresh_token: str) -> TokenGrant:
        grant = await self._request_token(
            GOOGLE_TOKEN_URL,
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        )
        logger.info("YouTube token refreshed")
        return grant

    def _auth(self, credential: Credential | None) -> tuple[dict, dict]:
        if credential:
            return {}, {"Authorization": f"Bearer {credential.access_token}"}
        return {"key": self.api_key}, {}

    async def fetch_stats(
        self, identifier: str, credential: Credential | None = None
    ) -> PlatformSnapshot:
        """Fetch channel stats.

        ``views`` is the sum over the 50 most recent uploads, which is what
        the revenue estimate is based on.
        """
        auth_params, headers = self._auth(credential)

        async with self._client() as client:
            data = await self._get_json(
                client,
                f"{YT_API_BASE}/channels",
                params={"part": "statistics,snippet", "id": identifier, **auth_params},
                headers=headers,
            )
            items = data.get("items") or []
            if not items:
                raise ProviderDataError(f"YouTube channel {identifier} not found", platform=self.name)

            channel = items[0]
            snippet = channel.get("snippet", {})
            statistics = channel.get("statistics", {})

            search = await self._get_json(
                client,
                f"{YT_API_BASE}/search",
                params={
                    "part": "id",
                    "channelId": identifier,
                    "order": "date",
                    "maxResults": 50,
                    "type": "video",
                    **auth_params,
                },
                headers=headers,
            )
            video_ids = [
                item["id"]["videoId"]
                for item in search.get("items", [])
                if item.get("id", {}).get("videoId")
            ]

            views = 0
            if video_ids:
                videos = await self._get_json(
                    client,
                    f"{YT_API_BASE}/videos",
                    params={"part": "statistics", "id": ",".join(video_ids), **auth_params},
                    headers=headers,
                )
                views = sum(
                    int(video.get("statistics", {}).get("viewCount", 0))
                    for video in videos.get("items", [])
                )

        snapshot = PlatformSnapshot(
            name=self.name,
            identifier=identifier,
            channel_name=snippet.get("title"),
            thumbnail_url=snippet.get("thumbnails", {}).get("default", {}).get("url"),
            subscribers=int(statistics.get("subscriberCount", 0)),
            views=views,
            revenue=estimate_revenue(views),
        )
        logger.info(
            f"YouTube stats fetched for {snapshot.channel_name}: "
            f"{snapshot.subscribers} subscribers, {snapshot.views} recent views"
        )
        return snapshot
