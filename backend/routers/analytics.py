"""Analytics router - platform stats snapshots and cross-platform report.

Platforms are passed as repeated ``platform=name:identifier`` query
parameters, e.g. ``?platform=youtube:UC123&platform=twitch:somecreator``.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from middleware.auth import get_current_user_id, get_optional_user_id
from middleware.rate_limit import limiter
from routers.deps import get_services, parse_platform_params
from schemas import AnalyticsReport, PlatformSnapshot
from services.container import ServiceContainer

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/analytics", tags=["analytics"])


# Response schemas
class StatsResponse(BaseModel):
    platforms: list[PlatformSnapshot]


class ReportResponse(BaseModel):
    platforms: list[PlatformSnapshot]
    analytics: AnalyticsReport


class CacheInfoResponse(BaseModel):
    size: int
    entries: list[str]


@router.get("/stats", response_model=StatsResponse)
async def get_platform_stats(
    services: Annotated[ServiceContainer, Depends(get_services)],
    user_id: Annotated[str | None, Depends(get_optional_user_id)],
    platform: Annotated[list[str], Query()],
):
    """Get stats for each requested platform.

    Always returns one snapshot per platform; failed platforms come back
    zeroed with an ``error`` message.
    """
    requests = parse_platform_params(platform)
    snapshots = await services.analytics.get_all_platform_stats(requests, user_id)
    return StatsResponse(platforms=snapshots)


@router.get("/report", response_model=ReportResponse)
async def get_analytics_report(
    services: Annotated[ServiceContainer, Depends(get_services)],
    user_id: Annotated[str | None, Depends(get_optional_user_id)],
    platform: Annotated[list[str], Query()],
):
    """Get platform stats plus totals, growth, breakdown and monthly trend."""
    requests = parse_platform_params(platform)
    snapshots = await services.analytics.get_all_platform_stats(requests, user_id)
    report = await services.analytics.build_report(snapshots, user_id)
    return ReportResponse(platforms=snapshots, analytics=report)


@router.post("/refresh")
@limiter.limit("10/minute")
async def refresh_stats(
    request: Request,
    services: Annotated[ServiceContainer, Depends(get_services)],
    user_id: Annotated[str, Depends(get_current_user_id)],
):
    """Drop cached stats so the next request fetches fresh data."""
    services.analytics.invalidate_cache()
    logger.info(f"Stats cache invalidated by user {user_id}")
    return {"message": "Stats cache cleared"}


@router.get("/cache", response_model=CacheInfoResponse)
async def get_cache_info(
    services: Annotated[ServiceContainer, Depends(get_services)],
    user_id: Annotated[str, Depends(get_current_user_id)],
):
    """Current stats cache contents."""
    return CacheInfoResponse(**services.stats_cache.cache_info())
