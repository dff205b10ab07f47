"""Provider protocol, registry, and shared HTTP plumbing for platform clients."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol, runtime_checkable

import httpx

from schemas import Credential, PlatformSnapshot, TokenGrant
from services.errors import (
    AuthError,
    ProviderDataError,
    TransientProviderError,
    UnsupportedPlatformError,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class Provider(Protocol):
    """What the core needs from a platform: token refresh and stats."""

    name: str

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """Exchange a refresh token for new tokens.

        Raises AuthError when the token is revoked/invalid or the response is
        malformed, TransientProviderError when the provider is unreachable.
        """
        ...

    async def fetch_stats(
        self, identifier: str, credential: Credential | None = None
    ) -> PlatformSnapshot:
        """Fetch current stats for an account, publicly if no credential is given."""
        ...


class ProviderRegistry:
    """Maps platform names to providers. Names are case-insensitive."""

    def __init__(self):
        self._providers: dict[str, Provider] = {}

    def register(self, provider: Provider, name: str | None = None) -> None:
        key = (name or provider.name).lower()
        self._providers[key] = provider
        logger.info(f"Registered provider for {key}")

    def get(self, platform: str) -> Provider:
        try:
            return self._providers[platform.lower()]
        except KeyError:
            raise UnsupportedPlatformError(platform) from None

    def platforms(self) -> list[str]:
        return sorted(self._providers)

    def __contains__(self, platform: str) -> bool:
        return platform.lower() in self._providers


class HttpProvider:
    """Base for httpx-backed providers.

    ``transport`` is passed through to ``httpx.AsyncClient`` so tests can
    swap in ``httpx.MockTransport``.
    """

    name = ""

    def __init__(self, timeout: float = 20.0, transport: httpx.AsyncBaseTransport | None = None):
        self.timeout = timeout
        self.transport = transport
        self._app_token: str | None = None
        self._app_token_expires_at: datetime | None = None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def _request_token(
        self, url: str, data: dict | None = None, params: dict | None = None
    ) -> TokenGrant:
        """Call an OAuth token endpoint and parse the grant.

        Form ``data`` is POSTed; without it the endpoint is called with GET
        and query ``params``.
        """
        async with self._client() as client:
            try:
                if data is not None:
                    response = await client.post(
                        url,
                        data=data,
                        headers={"Content-Type": "application/x-www-form-urlencoded"},
                    )
                else:
                    response = await client.get(url, params=params)
            except httpx.RequestError as e:
                raise TransientProviderError(
                    f"{self.name} token endpoint unreachable", str(e), platform=self.name
                ) from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientProviderError(
                f"{self.name} token endpoint returned {response.status_code}",
                response.text,
                platform=self.name,
                status_code=response.status_code,
            )
        if response.status_code != 200:
            raise AuthError(
                f"{self.name} rejected the refresh token",
                f"{response.status_code} - {response.text}",
                platform=self.name,
            )

        try:
            return TokenGrant.model_validate(response.json())
        except ValueError as e:
            raise AuthError(
                f"Malformed {self.name} token response", str(e), platform=self.name
            ) from e

    async def _get_app_token(self, url: str, data: dict) -> str:
        """App access token from a client-credentials grant, cached until shortly before expiry."""
        now = datetime.now(timezone.utc)
        if self._app_token and self._app_token_expires_at and now < self._app_token_expires_at:
            return self._app_token

        grant = await self._request_token(url, data)
        self._app_token = grant.access_token
        # Renew a minute early
        self._app_token_expires_at = now + timedelta(seconds=max((grant.expires_in or 0) - 60, 0))
        return self._app_token

    async def _get_json(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> dict:
        """GET a JSON document, mapping failures onto the provider error taxonomy."""
        try:
            response = await client.get(url, params=params, headers=headers)
        except httpx.RequestError as e:
            raise TransientProviderError(
                f"{self.name} API unreachable", str(e), platform=self.name
            ) from e

        if response.status_code == 429 or response.status_code >= 500:
            retry_after = response.headers.get("Retry-After")
            raise TransientProviderError(
                f"{self.name} API returned {response.status_code}",
                response.text,
                platform=self.name,
                status_code=response.status_code,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if response.status_code in (401, 403):
            raise AuthError(
                f"{self.name} API denied access",
                f"{response.status_code} - {response.text}",
                platform=self.name,
            )
        if response.status_code != 200:
            raise ProviderDataError(
                f"{self.name} API returned {response.status_code}",
                response.text,
                platform=self.name,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderDataError(
                f"{self.name} API returned invalid JSON", str(e), platform=self.name
            ) from e
        if not isinstance(data, dict):
            raise ProviderDataError(f"{self.name} API returned unexpected payload", platform=self.name)
        return data
