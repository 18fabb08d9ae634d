"""
Provider registry.

A construct-once mapping from provider name to provider instance. Every
known provider is registered, configured or not; unconfigured providers
reject authorization requests with ProviderNotConfiguredError.
"""

import logging

from lifehub.core.domain import ProviderStatus
from lifehub.core.ports import OAuthProvider
from lifehub.integrations.config import IntegrationsConfig, get_integrations_config
from lifehub.integrations.providers.google import GoogleProvider
from lifehub.integrations.providers.microsoft import MicrosoftProvider
from lifehub.integrations.providers.reddit import RedditProvider
from lifehub.integrations.providers.spotify import SpotifyProvider
from lifehub.integrations.providers.youtube import YouTubeProvider
from lifehub.integrations.providers.youtubemusic import YouTubeMusicProvider


logger = logging.getLogger(__name__)

PROVIDER_CLASSES = {
    "spotify": SpotifyProvider,
    "google": GoogleProvider,
    "microsoft": MicrosoftProvider,
    "reddit": RedditProvider,
    "youtube": YouTubeProvider,
    "youtubemusic": YouTubeMusicProvider,
}


class ProviderRegistry:
    """Lookup of OAuth providers by lowercase name."""

    def __init__(self, config: IntegrationsConfig):
        self._providers: dict[str, OAuthProvider] = {
            name: cls(config.provider(name), timeout=config.http_timeout)
            for name, cls in PROVIDER_CLASSES.items()
        }

        for status in self.list():
            if status.configured:
                logger.info(f"Registered {status.name} OAuth provider")
            else:
                logger.debug(
                    f"{status.name} OAuth not configured (missing credentials)"
                )

    def get(self, name: str) -> OAuthProvider | None:
        """Provider for ``name``, or None if unknown."""
        return self._providers.get(name)

    def names(self) -> list[str]:
        return list(self._providers)

    def list(self) -> list[ProviderStatus]:
        """All providers with their current configured flag."""
        return [
            ProviderStatus(name=p.name, configured=p.is_configured())
            for p in self._providers.values()
        ]


# Global registry singleton
_registry: ProviderRegistry | None = None


def get_provider_registry() -> ProviderRegistry:
    """
    Get the provider registry singleton.

    Creates the registry from environment configuration on first access.
    """
    global _registry
    if _registry is None:
        _registry = ProviderRegistry(get_integrations_config())
    return _registry


def reset_provider_registry() -> None:
    """
    Reset the provider registry.

    Useful for testing with different configurations.
    """
    global _registry
    _registry = None
