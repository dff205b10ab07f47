"""Encrypted-at-rest storage of OAuth credentials, one row per (user, platform)."""

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.credential import UserCredential
from schemas import Credential
from services.errors import CredentialCorruptError, StorageError
from services.token_cipher import TokenCipher

logger = logging.getLogger(__name__)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from backends without tz support."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class CredentialStore:
    """Durable credential storage.

    Secrets are only ever written through ``TokenCipher``; the row keeps
    ``expires_at`` in the clear for indexing.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], cipher: TokenCipher):
        self._session_factory = session_factory
        self._cipher = cipher

    def _decode(self, row: UserCredential) -> Credential:
        try:
            payload = self._cipher.decrypt(row.token_data)
            return Credential(
                user_id=row.user_id,
                platform=row.platform,
                access_token=payload["access_token"],
                refresh_token=payload.get("refresh_token"),
                expires_at=as_utc(row.expires_at),
                scope=payload.get("scope"),
                token_type=payload.get("token_type"),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise CredentialCorruptError(row.user_id, row.platform, str(e)) from e

    def _encode(self, credential: Credential) -> str:
        return self._cipher.encrypt({
            "access_token": credential.access_token,
            "refresh_token": credential.refresh_token,
            "scope": credential.scope,
            "token_type": credential.token_type,
        })

    async def get(self, user_id: str, platform: str) -> Credential | None:
        """Load and decrypt a credential.

        Raises CredentialCorruptError when the stored payload is unreadable.
        """
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(UserCredential).where(
                        UserCredential.user_id == user_id,
                        UserCredential.platform == platform,
                    )
                )
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError("Failed to read credential", str(e)) from e

        if row is None:
            return None
        return self._decode(row)

    async def save(self, credential: Credential) -> None:
        """Insert or update the credential for its (user, platform) key."""
        token_data = self._encode(credential)
        try:
            async with self._session_factory() as db:
                await self._upsert(db, credential, token_data)
                try:
                    await db.commit()
                except IntegrityError:
                    # Lost an insert race for the same key - update the winner's row.
                    await db.rollback()
                    await self._upsert(db, credential, token_data)
                    await db.commit()
        except SQLAlchemyError as e:
            raise StorageError("Failed to save credential", str(e)) from e

    async def _upsert(self, db: AsyncSession, credential: Credential, token_data: str) -> None:
        result = await db.execute(
            select(UserCredential).where(
                UserCredential.user_id == credential.user_id,
                UserCredential.platform == credential.platform,
            )
        )
        existing = result.scalar_one_or_none()

        if existing:
            existing.token_data = token_data
            existing.expires_at = credential.expires_at
            existing.updated_at = datetime.now(timezone.utc)
        else:
            db.add(UserCredential(
                user_id=credential.user_id,
                platform=credential.platform,
                token_data=token_data,
                expires_at=credential.expires_at,
            ))

    async def delete(self, user_id: str, platform: str) -> bool:
        """Delete a credential. Returns False if there was nothing to delete."""
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    delete(UserCredential).where(
                        UserCredential.user_id == user_id,
                        UserCredential.platform == platform,
                    )
                )
                await db.commit()
        except SQLAlchemyError as e:
            raise StorageError("Failed to delete credential", str(e)) from e

        removed = result.rowcount > 0
        if removed:
            logger.info(f"Removed {platform} credential for user {user_id}")
        return removed

    async def list_keys(self) -> list[tuple[str, str]]:
        """All stored (user_id, platform) keys."""
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(UserCredential.user_id, UserCredential.platform)
                    .order_by(UserCredential.user_id, UserCredential.platform)
                )
                return [(user_id, platform) for user_id, platform in result.all()]
        except SQLAlchemyError as e:
            raise StorageError("Failed to list credentials", str(e)) from e

    async def list_platforms(self, user_id: str) -> list[str]:
        """Platforms the user has a stored credential for."""
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(UserCredential.platform)
                    .where(UserCredential.user_id == user_id)
                    .order_by(UserCredential.platform)
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError("Failed to list credentials", str(e)) from e
