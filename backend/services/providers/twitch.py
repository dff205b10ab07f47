"""Twitch provider - OAuth refresh and Helix API stats."""

import logging

import httpx

from schemas import Credential, PlatformSnapshot, TokenGrant
from services.errors import ProviderDataError
from services.providers.base import HttpProvider

logger = logging.getLogger(__name__)

TWITCH_TOKEN_URL = "https://id.twitch.tv/oauth2/token"
HELIX_API_BASE = "https://api.twitch.tv/helix"


def estimate_revenue(followers: int, viewers: int) -> int:
    """Rough monthly estimate: $0.01 per follower, $0.05 per concurrent viewer."""
    return round(followers * 0.01 + viewers * 0.05)


class TwitchProvider(HttpProvider):
    """Twitch OAuth + Helix API client.

    Public lookups use an app access token from the client-credentials
    grant, cached until shortly before it expires.
    """

    name = "twitch"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self.client_id = client_id
        self.client_secret = client_secret

    async def refresh(self, refresh_token: str) -> TokenGrant:
        grant = await self._request_token(
            TWITCH_TOKEN_URL,
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        )
        logger.info("Twitch token refreshed")
        return grant

    async def fetch_stats(
        self, identifier: str, credential: Credential | None = None
    ) -> PlatformSnapshot:
        """Fetch channel stats for a Twitch login name."""
        token = credential.access_token if credential else await self._get_app_token(
            TWITCH_TOKEN_URL,
            {"grant_type": "client_credentials", "client_id": self.client_id, "client_secret": self.client_secret},
        )
        headers = {
            "Client-ID": self.client_id,
            "Authorization": f"Bearer {token}",
        }

        async with self._client() as client:
            users = await self._get_json(
                client, f"{HELIX_API_BASE}/users", params={"login": identifier}, headers=headers
            )
            if not users.get("data"):
                raise ProviderDataError(f"Twitch user {identifier} not found", platform=self.name)
            user = users["data"][0]

            followers = await self._get_json(
                client,
                f"{HELIX_API_BASE}/channels/followers",
                params={"broadcaster_id": user["id"]},
                headers=headers,
            )
            streams = await self._get_json(
                client,
                f"{HELIX_API_BASE}/streams",
                params={"user_id": user["id"]},
                headers=headers,
            )

        follower_count = int(followers.get("total", 0))
        stream = (streams.get("data") or [None])[0]
        viewers = int(stream.get("viewer_count", 0)) if stream else 0

        snapshot = PlatformSnapshot(
            name=self.name,
            identifier=identifier,
            channel_name=user.get("display_name"),
            thumbnail_url=user.get("profile_image_url"),
            followers=follower_count,
            viewers=viewers,
            revenue=estimate_revenue(follower_count, viewers),
            is_live=stream is not None,
        )
        logger.info(
            f"Twitch stats fetched for {snapshot.channel_name}: "
            f"{snapshot.followers} followers, {snapshot.viewers} viewers"
        )
        return snapshot
