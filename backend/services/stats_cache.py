"""Short-TTL cache in front of provider stats fetches.

Entries are keyed by (platform, identifier, user scope) so a creator's
authenticated view of an account never leaks into anonymous lookups.
"""

import asyncio
import logging
import time
from collections.abc import Callable

from cachetools import TTLCache

from schemas import PlatformRequest, PlatformSnapshot
from services.credential_manager import CredentialLifecycleManager
from services.keyed_lock import KeyedLocks
from services.providers.base import ProviderRegistry

logger = logging.getLogger(__name__)

PUBLIC_SCOPE = "public"

CacheKey = tuple[str, str, str]


class StatsCache:
    """Per-user TTL cache wrapping provider stats fetches."""

    def __init__(
        self,
        manager: CredentialLifecycleManager,
        registry: ProviderRegistry,
        ttl_seconds: float = 300,
        maxsize: int = 1024,
        timer: Callable[[], float] = time.monotonic,
        locks: KeyedLocks | None = None,
    ):
        self.manager = manager
        self.registry = registry
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_seconds, timer=timer)
        self._locks = locks or KeyedLocks()

    @staticmethod
    def _key(platform: str, identifier: str, user_id: str | None) -> CacheKey:
        return (platform.lower(), identifier, user_id or PUBLIC_SCOPE)

    async def get_stats(
        self, platform: str, identifier: str, user_id: str | None = None
    ) -> PlatformSnapshot:
        """Cached snapshot for an account, fetched from the provider on a miss.

        With a user id the user's credential is used (refreshed if needed);
        ReauthRequired and provider errors propagate.
        """
        key = self._key(platform, identifier, user_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        # Concurrent misses for one key wait here and reuse the first fetch
        async with self._locks.lock(key):
            cached = self._cache.get(key)
            if cached is not None:
                return cached

            provider = self.registry.get(platform)
            credential = None
            if user_id:
                credential = await self.manager.get_valid_token(user_id, platform)

            snapshot = await provider.fetch_stats(identifier, credential)
            self._cache[key] = snapshot
            return snapshot

    async def get_all_stats(
        self, requests: list[PlatformRequest], user_id: str | None = None
    ) -> list[PlatformSnapshot]:
        """One snapshot per request, in request order.

        Every request runs to completion; a failed one is replaced by a zeroed
        fallback snapshot carrying the failure reason.
        """
        results = await asyncio.gather(
            *(self.get_stats(r.name, r.identifier, user_id) for r in requests),
            return_exceptions=True,
        )

        snapshots = []
        for request, result in zip(requests, results):
            if isinstance(result, Exception):
                logger.error(f"Failed to fetch {request.name} data for {request.identifier}: {result}")
                snapshots.append(PlatformSnapshot.fallback(request, str(result)))
            elif isinstance(result, BaseException):
                raise result
            else:
                snapshots.append(result)
        return snapshots

    def invalidate_all(self) -> None:
        """Drop every cached snapshot."""
        size = len(self._cache)
        self._cache.clear()
        logger.info(f"Stats cache cleared ({size} entries)")

    def cache_info(self) -> dict:
        self._cache.expire()
        return {
            "size": len(self._cache),
            "entries": [":".join(key) for key in self._cache.keys()],
        }
