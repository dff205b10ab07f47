"""Platform providers."""

from config import Settings
from services.providers.base import HttpProvider, Provider, ProviderRegistry
from services.providers.instagram import InstagramProvider
from services.providers.tiktok import TikTokProvider
from services.providers.twitch import TwitchProvider
from services.providers.youtube import YouTubeProvider


def build_registry(settings: Settings) -> ProviderRegistry:
    """Registry with every supported platform, configured from settings."""
    registry = ProviderRegistry()
    registry.register(YouTubeProvider(
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        api_key=settings.youtube_api_key,
        timeout=settings.provider_timeout_seconds,
    ))
    registry.register(TwitchProvider(
        client_id=settings.twitch_client_id,
        client_secret=settings.twitch_client_secret,
        timeout=settings.provider_timeout_seconds,
    ))
    registry.register(TikTokProvider(
        client_key=settings.tiktok_client_key,
        client_secret=settings.tiktok_client_secret,
        timeout=settings.provider_timeout_seconds,
    ))
    registry.register(InstagramProvider(
        access_token=settings.instagram_access_token,
        timeout=settings.provider_timeout_seconds,
    ))
    return registry


__all__ = [
    "HttpProvider",
    "InstagramProvider",
    "Provider",
    "ProviderRegistry",
    "TikTokProvider",
    "TwitchProvider",
    "YouTubeProvider",
    "build_registry",
]
