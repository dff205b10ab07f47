"""Stored OAuth credentials for creator platform connections."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import DateTime, Index, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class UserCredential(Base):
    """OAuth credential for one (user, platform) pair.

    ``token_data`` is a Fernet-encrypted JSON document holding the access
    token, refresh token, scope and token type. ``expires_at`` is kept in the
    clear so expired rows can be found without decrypting every payload.
    """

    __tablename__ = "user_credentials"
    __table_args__ = (
        UniqueConstraint("user_id", "platform", name="uq_user_credentials_user_platform"),
        Index("ix_user_credentials_expires_at", "expires_at"),
        Index("ix_user_credentials_platform", "platform"),
    )

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    platform: Mapped[str] = mapped_column(String(50), nullable=False)

    token_data: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<UserCredential {self.platform}: user={self.user_id}>"
