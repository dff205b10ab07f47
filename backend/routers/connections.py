"""Connections router - a creator's stored platform credentials.

The authorization dance that creates a credential happens elsewhere; this
router only reports and removes what is stored.
"""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from middleware.auth import get_current_user_id
from routers.deps import get_services
from services.container import ServiceContainer

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/connections", tags=["connections"])


# Response schemas
class ConnectionsResponse(BaseModel):
    connected_platforms: list[str]


class TokenStatusResponse(BaseModel):
    platform: str
    connected: bool
    expires_at: datetime | None


@router.get("", response_model=ConnectionsResponse)
async def list_connections(
    services: Annotated[ServiceContainer, Depends(get_services)],
    user_id: Annotated[str, Depends(get_current_user_id)],
):
    """Platforms with a usable credential. Expired ones are refreshed or dropped."""
    platforms = await services.credentials.connected_platforms(user_id)
    return ConnectionsResponse(connected_platforms=platforms)


@router.get("/{platform}", response_model=TokenStatusResponse)
async def get_connection(
    platform: str,
    services: Annotated[ServiceContainer, Depends(get_services)],
    user_id: Annotated[str, Depends(get_current_user_id)],
):
    """Status of one platform credential.

    Responds 401 if the credential had to be evicted and the creator must
    re-authorize.
    """
    credential = await services.credentials.get_valid_token(user_id, platform)
    return TokenStatusResponse(
        platform=platform.lower(),
        connected=credential is not None,
        expires_at=credential.expires_at if credential else None,
    )


@router.delete("/{platform}")
async def delete_connection(
    platform: str,
    services: Annotated[ServiceContainer, Depends(get_services)],
    user_id: Annotated[str, Depends(get_current_user_id)],
):
    """Disconnect a platform."""
    await services.credentials.remove_credential(user_id, platform)
    return {"message": f"{platform.lower()} disconnected successfully"}
