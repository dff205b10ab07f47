"""Wall-clock helper shared by services that take an injectable clock."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
