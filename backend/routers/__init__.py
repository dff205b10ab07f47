"""Routers package."""

from .analytics import router as analytics_router
from .connections import router as connections_router

__all__ = [
    "analytics_router",
    "connections_router",
]
