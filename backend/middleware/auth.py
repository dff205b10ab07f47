"""Authentication middleware - JWT verification and creator id extraction."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from config import get_settings

settings = get_settings()

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def decode_user_id(token: str) -> str | None:
    """Return the ``sub`` claim of a valid access token, or None."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if payload.get("type", "access") != "access":
        return None
    return payload.get("sub")


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> str:
    """Extract and validate the calling creator's id from the bearer token."""
    user_id = decode_user_id(credentials.credentials)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


async def get_optional_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(optional_security)],
) -> str | None:
    """Creator id if a valid bearer token was sent, None for anonymous lookups."""
    if credentials is None:
        return None
    return decode_user_id(credentials.credentials)
