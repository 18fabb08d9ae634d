"""
Google OAuth2 provider.

The authorization/token helpers here are shared with the YouTube and
YouTube Music providers, which use the same Google endpoints with
different scopes.
"""

from lifehub.core.domain import TokenSet
from lifehub.core.exceptions import (
    ProviderNotConfiguredError,
    TokenExchangeError,
    TokenRefreshError,
)
from lifehub.integrations.config import DEFAULT_HTTP_TIMEOUT_SECONDS, ProviderConfig
from lifehub.integrations.http import build_url, post_token_form

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_SCOPES = (
    "https://www.googleapis.com/auth/gmail.readonly openid email profile"
)


def google_authorization_url(config: ProviderConfig, scopes: str, state: str) -> str:
    """Offline-access consent URL so Google always issues a refresh token."""
    return build_url(
        GOOGLE_AUTHORIZE_URL,
        {
            "client_id": config.client_id,
            "response_type": "code",
            "redirect_uri": config.redirect_uri,
            "scope": scopes,
            "access_type": "offline",
            "include_granted_scopes": "true",
            "prompt": "consent",
            "state": state,
        },
    )


async def google_exchange_code(
    name: str, config: ProviderConfig, code: str, timeout: float
) -> TokenSet:
    return await post_token_form(
        name,
        GOOGLE_TOKEN_URL,
        {
            "client_id": config.client_id,
            "client_secret": config.client_secret or "",
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": config.redirect_uri,
        },
        TokenExchangeError,
        timeout,
    )


async def google_refresh(
    name: str, config: ProviderConfig, refresh_token: str, timeout: float
) -> TokenSet:
    return await post_token_form(
        name,
        GOOGLE_TOKEN_URL,
        {
            "client_id": config.client_id,
            "client_secret": config.client_secret or "",
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        },
        TokenRefreshError,
        timeout,
    )


class GoogleProvider:
    name = "google"

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
        return google_authorization_url(self._config, GOOGLE_SCOPES, state)

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
