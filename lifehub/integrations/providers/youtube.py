"""YouTube Data API provider (Google OAuth, read-only YouTube scope)."""

from lifehub.core.domain import TokenSet
from lifehub.core.exceptions import ProviderNotConfiguredError
from lifehub.integrations.config import DEFAULT_HTTP_TIMEOUT_SECONDS, ProviderConfig
from lifehub.integrations.providers.google import (
    google_authorization_url,
    google_exchange_code,
    google_refresh,
)

YOUTUBE_SCOPES = "https://www.googleapis.com/auth/youtube.readonly"


class YouTubeProvider:
    name = "youtube"

    def __init__(
        self, config: ProviderConfig, timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS
    ):
        self._config = config
        self._timeout = timeout

    def is_configured(self) -> bool:
        return bool(self._config.client_id and self._config.redirect_uri)

    def build_authorization_url(self, state: str) -> str:
        if not self.is_configured():
            raise ProviderNotConfiguredError(self.name)
        return google_authorization_url(self._config, YOUTUBE_SCOPES, state)

    async def exchange_code_for_tokens(self, code: str) -> TokenSet:
        if not self.is_configured():
            raise ProviderNotConfiguredError(self.name)
        return await google_exchange_code(self.name, self._config, code, self._timeout)

    async def refresh_tokens(self, refresh_token: str) -> TokenSet:
        if not self.is_configured():
            raise ProviderNotConfiguredError(self.name)
        return await google_refresh(
            self.name, self._config, refresh_token, self._timeout
        )
