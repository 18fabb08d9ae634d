"""Microsoft identity platform (v2.0 endpoint) provider."""

from lifehub.core.domain import TokenSet
from lifehub.core.exceptions import (
    ProviderNotConfiguredError,
    TokenExchangeError,
    TokenRefreshError,
)
from lifehub.integrations.config import DEFAULT_HTTP_TIMEOUT_SECONDS, ProviderConfig
from lifehub.integrations.http import build_url, post_token_form

MICROSOFT_AUTHORIZE_URL = (
    "https://login.microsoftonline.com/common/oauth2/v2.0/authorize"
)
MICROSOFT_TOKEN_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/token"
# The v2.0 token endpoint wants the scope repeated on every grant
MICROSOFT_SCOPES = "offline_access openid profile https://graph.microsoft.com/Mail.Read"


class MicrosoftProvider:
    name = "microsoft"

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
            MICROSOFT_AUTHORIZE_URL,
            {
                "client_id": self._config.client_id,
                "response_type": "code",
                "redirect_uri": self._config.redirect_uri,
                "response_mode": "query",
                "scope": MICROSOFT_SCOPES,
                "state": state,
            },
        )

    async def exchange_code_for_tokens(self, code: str) -> TokenSet:
        if not self.is_configured():
            raise ProviderNotConfiguredError(self.name)
        return await post_token_form(
            self.name,
            MICROSOFT_TOKEN_URL,
            {
                "client_id": self._config.client_id,
                "scope": MICROSOFT_SCOPES,
                "code": code,
                "redirect_uri": self._config.redirect_uri,
                "grant_type": "authorization_code",
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
            MICROSOFT_TOKEN_URL,
            {
                "client_id": self._config.client_id,
                "scope": MICROSOFT_SCOPES,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
                "client_secret": self._config.client_secret or "",
            },
            TokenRefreshError,
            self._timeout,
        )
