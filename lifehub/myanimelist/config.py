"""
MyAnimeList integration configuration.

Contains endpoints and environment-derived settings for the MAL PKCE
linking flow and the sync/read endpoints.
"""

import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from lifehub.infrastructure.encryption import load_cipher_key
from lifehub.integrations.config import (
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_REDIRECT_BASE_URL,
    DEFAULT_REDIRECT_PATH,
)


MAL_AUTHORIZE_URL = "https://myanimelist.net/v1/oauth2/authorize"
MAL_TOKEN_URL = "https://myanimelist.net/v1/oauth2/token"
MAL_API_BASE_URL = "https://api.myanimelist.net/v2"
MAL_SCOPE = "read"

DEFAULT_SYNC_COOLDOWN_MINUTES = 30
HISTORY_PAGE_SIZE = 50
RECENT_LIMIT = 25
SEASONAL_PAGE_SIZE = 100

# Query marker appended to the post-link redirect
LINKED_MARKER = "mal_linked"


@dataclass(frozen=True)
class MALConfig:
    """Configuration for MyAnimeList access."""

    client_id: str | None = None
    client_secret: str | None = None
    redirect_uri: str | None = None
    tokens_key: bytes | None = None
    redirect_base_url: str = DEFAULT_REDIRECT_BASE_URL
    redirect_path: str = DEFAULT_REDIRECT_PATH
    sync_cooldown: timedelta = timedelta(minutes=DEFAULT_SYNC_COOLDOWN_MINUTES)
    http_timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "MALConfig":
        """Load configuration from environment variables."""
        try:
            cooldown_minutes = int(
                os.getenv("MAL_SYNC_COOLDOWN_MINUTES", DEFAULT_SYNC_COOLDOWN_MINUTES)
            )
        except ValueError:
            cooldown_minutes = DEFAULT_SYNC_COOLDOWN_MINUTES
        try:
            http_timeout = float(
                os.getenv("HTTP_TIMEOUT_SECONDS", DEFAULT_HTTP_TIMEOUT_SECONDS)
            )
        except ValueError:
            http_timeout = DEFAULT_HTTP_TIMEOUT_SECONDS

        return cls(
            client_id=os.getenv("MAL_CLIENT_ID") or None,
            client_secret=os.getenv("MAL_CLIENT_SECRET") or None,
            redirect_uri=os.getenv("MAL_REDIRECT_URI") or None,
            tokens_key=load_cipher_key(os.getenv("MAL_TOKENS_SECRET")),
            redirect_base_url=os.getenv(
                "OAUTH_REDIRECT_BASE_URL", DEFAULT_REDIRECT_BASE_URL
            ),
            redirect_path=os.getenv("OAUTH_REDIRECT_PATH", DEFAULT_REDIRECT_PATH),
            sync_cooldown=timedelta(minutes=cooldown_minutes),
            http_timeout=http_timeout,
        )

    def can_link(self) -> bool:
        """Check if the PKCE flow can run (client id and redirect URI)."""
        return bool(self.client_id and self.redirect_uri)

    def can_encrypt_tokens(self) -> bool:
        return self.tokens_key is not None

    @property
    def linked_redirect_url(self) -> str:
        return f"{self.redirect_base_url}{self.redirect_path}?{LINKED_MARKER}=1"


@lru_cache()
def get_mal_config() -> MALConfig:
    """Get MyAnimeList configuration singleton."""
    return MALConfig.from_env()
