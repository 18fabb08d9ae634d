"""
OAuth2 provider configuration.

Each provider (Spotify, Google, ...) is configured independently from
<PREFIX>_CLIENT_ID / <PREFIX>_CLIENT_SECRET / <PREFIX>_REDIRECT_URI.
Configuration is loaded once and is immutable afterwards.
"""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache


logger = logging.getLogger(__name__)

DEFAULT_REDIRECT_BASE_URL = "http://localhost:8080"
DEFAULT_REDIRECT_PATH = "/feeds"
DEFAULT_HTTP_TIMEOUT_SECONDS = 15.0
DEFAULT_SWEEP_INTERVAL_SECONDS = 60.0

# provider name -> environment variable prefix
PROVIDER_ENV_PREFIXES = {
    "spotify": "SPOTIFY",
    "google": "GOOGLE",
    "microsoft": "MS",
    "reddit": "REDDIT",
    "youtube": "YOUTUBE",
    "youtubemusic": "YOUTUBEMUSIC",
}

SUPPORTED_PROVIDERS = list(PROVIDER_ENV_PREFIXES)


def _float_from_env(name: str, fallback: float) -> float:
    try:
        value = float(os.getenv(name, ""))
    except ValueError:
        return fallback
    return value if value > 0 else fallback


@dataclass(frozen=True)
class ProviderConfig:
    """Client credentials for one provider."""

    client_id: str | None = None
    client_secret: str | None = None
    redirect_uri: str | None = None

    @classmethod
    def from_env(cls, prefix: str) -> "ProviderConfig":
        return cls(
            client_id=os.getenv(f"{prefix}_CLIENT_ID") or None,
            client_secret=os.getenv(f"{prefix}_CLIENT_SECRET") or None,
            redirect_uri=os.getenv(f"{prefix}_REDIRECT_URI") or None,
        )


@dataclass(frozen=True)
class IntegrationsConfig:
    """
    Settings shared by all OAuth integrations.

    Loaded from environment variables.
    """

    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    redirect_base_url: str = DEFAULT_REDIRECT_BASE_URL
    redirect_path: str = DEFAULT_REDIRECT_PATH
    http_timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS
    sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS

    @classmethod
    def from_env(cls) -> "IntegrationsConfig":
        """Load configuration from environment variables."""
        return cls(
            providers={
                name: ProviderConfig.from_env(prefix)
                for name, prefix in PROVIDER_ENV_PREFIXES.items()
            },
            redirect_base_url=os.getenv(
                "OAUTH_REDIRECT_BASE_URL", DEFAULT_REDIRECT_BASE_URL
            ),
            redirect_path=os.getenv("OAUTH_REDIRECT_PATH", DEFAULT_REDIRECT_PATH),
            http_timeout=_float_from_env(
                "HTTP_TIMEOUT_SECONDS", DEFAULT_HTTP_TIMEOUT_SECONDS
            ),
            sweep_interval=_float_from_env(
                "HANDOFF_SWEEP_INTERVAL_SECONDS", DEFAULT_SWEEP_INTERVAL_SECONDS
            ),
        )

    def provider(self, name: str) -> ProviderConfig:
        """Config for a provider; empty (unconfigured) if unknown."""
        return self.providers.get(name, ProviderConfig())

    @property
    def redirect_url(self) -> str:
        """Browser landing page after any OAuth callback."""
        return f"{self.redirect_base_url}{self.redirect_path}"


@lru_cache()
def get_integrations_config() -> IntegrationsConfig:
    """Get integrations configuration singleton."""
    return IntegrationsConfig.from_env()
