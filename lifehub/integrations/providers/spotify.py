"""Spotify OAuth2 provider."""

from lifehub.core.domain import TokenSet
from lifehub.core.exceptions import (
    ProviderNotConfiguredError,
    TokenExchangeError,
    TokenRefreshError,
)
from lifehub.integrations.config import DEFAULT_HTTP_TIMEOUT_SECONDS, ProviderConfig
from lifehub.integrations.http import build_url, post_token_form

SPOTIFY_AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_SCOPES = "user-read-recently-played user-top-read"


class SpotifyProvider:
    name = "spotify"

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
        return build_url(
            SPOTIFY_AUTHORIZE_URL,
            {
                "client_id": self._config.client_id,
                "response_type": "code",
                "redirect_uri": self._config.redirect_uri,
                "scope": SPOTIFY_SCOPES,
                "state": state,
            },
        )

    async def exchange_code_for_tokens(self, code: str) -> TokenSet:
        if not self.is_configured():
            raise ProviderNotConfiguredError(self.name)
        return await post_token_form(
            self.name,
            SPOTIFY_TOKEN_URL,
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._config.redirect_uri,
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret or "",
            },
            TokenExchangeError,
            self._timeout,
        )

    async def refresh_tokens(self, refresh_token: str) -> TokenSet:
        if not self.is_configured():
            raise ProviderNotConfiguredError(self.name)
        return await post_token_form(
            self.name,
            SPOTIFY_TOKEN_URL,
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret or "",
            },
            TokenRefreshError,
            self._timeout,
        )
