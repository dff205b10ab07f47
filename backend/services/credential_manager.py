"""Credential lifecycle - validation, refresh and eviction of stored OAuth tokens.

Per (user, platform) a credential is Valid (no expiry, or expiry in the
future), Expired (noticed lazily on read), Refreshing (a refresh call is in
flight, guarded by a per-key lock) or Invalid (deleted; the user has to
re-run the authorization flow).
"""

import enum
import logging
from collections.abc import Callable
from datetime import datetime

from schemas import Credential, TokenGrant
from services.clock import utcnow
from services.credential_store import CredentialStore
from services.errors import (
    AuthError,
    CredentialCorruptError,
    ProviderDataError,
    ReauthRequired,
    TransientProviderError,
)
from services.keyed_lock import KeyedLocks
from services.providers.base import ProviderRegistry

logger = logging.getLogger(__name__)


class RefreshOutcome(str, enum.Enum):
    """What ``ensure_fresh`` did to a stored credential."""
    ABSENT = "absent"
    VALID = "valid"
    REFRESHED = "refreshed"
    EVICTED = "evicted"


class CredentialLifecycleManager:
    """Hands out usable credentials, refreshing or evicting expired ones."""

    def __init__(
        self,
        store: CredentialStore,
        registry: ProviderRegistry,
        locks: KeyedLocks | None = None,
        clock: Callable[[], datetime] = utcnow,
        evict_on_transient_refresh_failure: bool = True,
    ):
        self.store = store
        self.registry = registry
        self._locks = locks or KeyedLocks()
        self._clock = clock
        self.evict_on_transient_refresh_failure = evict_on_transient_refresh_failure

    async def get_valid_token(self, user_id: str, platform: str) -> Credential | None:
        """Return a usable credential, refreshing it first if it has expired.

        Returns None when nothing is stored. Raises ReauthRequired when the
        stored credential could not be made usable; it has been deleted by
        the time the exception propagates.
        """
        platform = platform.lower()
        credential = await self._load(user_id, platform)
        if credential is None:
            return None
        if not credential.is_expired(self._clock()):
            return credential
        refreshed = await self._refresh(credential)
        if refreshed is None:
            raise ReauthRequired(user_id, platform, "credential was removed")
        return refreshed

    async def ensure_fresh(self, user_id: str, platform: str) -> RefreshOutcome:
        """Refresh-or-evict a single credential, reporting what happened."""
        platform = platform.lower()
        try:
            credential = await self._load(user_id, platform)
            if credential is None:
                return RefreshOutcome.ABSENT
            if not credential.is_expired(self._clock()):
                return RefreshOutcome.VALID
            refreshed = await self._refresh(credential)
        except ReauthRequired:
            return RefreshOutcome.EVICTED
        if refreshed is None:
            return RefreshOutcome.ABSENT
        return RefreshOutcome.REFRESHED

    async def save_credential(self, user_id: str, platform: str, grant: TokenGrant) -> Credential:
        """Store the tokens from a completed authorization flow."""
        credential = Credential(user_id=user_id, platform=platform.lower(), access_token="").with_grant(
            grant, self._clock()
        )
        await self.store.save(credential)
        logger.info(f"Stored {credential.platform} credential for user {user_id}")
        return credential

    async def remove_credential(self, user_id: str, platform: str) -> None:
        """Delete a credential. Deleting a missing credential is not an error."""
        await self.store.delete(user_id, platform.lower())

    async def connected_platforms(self, user_id: str) -> list[str]:
        """Platforms the user currently holds a usable credential for."""
        platforms = []
        for platform in await self.store.list_platforms(user_id):
            try:
                if await self.get_valid_token(user_id, platform):
                    platforms.append(platform)
            except ReauthRequired:
                continue
            except TransientProviderError as e:
                logger.warning(f"Could not verify {platform} credential for user {user_id}: {e}")
        return platforms

    async def _load(self, user_id: str, platform: str) -> Credential | None:
        try:
            return await self.store.get(user_id, platform)
        except CredentialCorruptError as e:
            logger.warning(f"Corrupt {platform} credential for user {user_id}, removing: {e}")
            await self.store.delete(user_id, platform)
            raise ReauthRequired(user_id, platform, "stored credential unreadable") from e

    async def _evict(self, credential: Credential, reason: str) -> ReauthRequired:
        logger.warning(
            f"Evicting {credential.platform} credential for user {credential.user_id}: {reason}"
        )
        await self.store.delete(credential.user_id, credential.platform)
        return ReauthRequired(credential.user_id, credential.platform, reason)

    async def _refresh(self, stale: Credential) -> Credential | None:
        """Refresh under the key's lock. None if the record is gone once the lock is held."""
        user_id, platform = stale.user_id, stale.platform

        async with self._locks.lock((user_id, platform)):
            # Another caller may have refreshed or evicted while we waited
            current = await self._load(user_id, platform)
            if current is None:
                return None
            if not current.is_expired(self._clock()):
                return current

            if not current.refresh_token:
                raise await self._evict(current, "expired without a refresh token")
            if platform not in self.registry:
                raise await self._evict(current, "no provider can refresh this platform")

            logger.info(f"Refreshing expired {platform} token for user {user_id}")
            provider = self.registry.get(platform)
            try:
                grant = await provider.refresh(current.refresh_token)
            except (AuthError, ProviderDataError) as e:
                raise await self._evict(current, f"refresh failed: {e}") from e
            except TransientProviderError as e:
                if not self.evict_on_transient_refresh_failure:
                    logger.warning(f"{platform} refresh for user {user_id} failed transiently: {e}")
                    raise
                raise await self._evict(current, f"refresh failed: {e}") from e

            if not grant.expires_in or grant.expires_in <= 0:
                raise await self._evict(current, "refresh response carried no expiry")

            refreshed = current.with_grant(grant, self._clock())
            await self.store.save(refreshed)
            logger.info(f"{platform} token refreshed for user {user_id}")
            return refreshed
