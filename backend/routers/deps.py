"""Shared router dependencies."""

from fastapi import HTTPException, Request, status

from schemas import PlatformRequest
from services.container import ServiceContainer


def get_services(request: Request) -> ServiceContainer:
    """Service container created by the app lifespan."""
    return request.app.state.services


def parse_platform_params(values: list[str]) -> list[PlatformRequest]:
    """Parse ``name:identifier`` query values into platform requests."""
    requests = []
    for value in values:
        name, sep, identifier = value.partition(":")
        if not sep or not name or not identifier:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid platform '{value}', expected name:identifier",
            )
        requests.append(PlatformRequest(name=name.lower(), identifier=identifier))
    return requests
