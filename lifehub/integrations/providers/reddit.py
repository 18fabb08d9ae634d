"""
Reddit OAuth2 provider.

Reddit authenticates token requests with HTTP Basic client credentials
instead of form fields, and needs duration=permanent to issue a refresh token.
"""

from lifehub.core.domain import TokenSet
from lifehub.core.exceptions import (
    ProviderNotConfiguredError,
    TokenExchangeError,
    TokenRefreshError,
)
from lifehub.integrations.config import DEFAULT_HTTP_TIMEOUT_SECONDS, ProviderConfig
from lifehub.integrations.http import build_url, post_token_form

REDDIT_AUTHORIZE_URL = "https://www.reddit.com/api/v1/authorize"
REDDIT_TOKEN_URL = "https://www.reddit.com/api/v1/access_token"
REDDIT_SCOPES = "read mysubreddits history"


class RedditProvider:
    name = "reddit"

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
            REDDIT_AUTHORIZE_URL,
            {
                "client_id": self._config.client_id,
                "response_type": "code",
                "redirect_uri": self._config.redirect_uri,
                "duration": "permanent",
                "scope": REDDIT_SCOPES,
                "state": state,
            },
        )

    def _basic_auth(self) -> tuple[str, str]:
        return (self._config.client_id or "", self._config.client_secret or "")

    async def exchange_code_for_tokens(self, code: str) -> TokenSet:
        if not self.is_configured():
            raise ProviderNotConfiguredError(self.name)
        return await post_token_form(
            self.name,
            REDDIT_TOKEN_URL,
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._config.redirect_uri,
            },
            TokenExchangeError,
            self._timeout,
            auth=self._basic_auth(),
        )

    async def refresh_tokens(self, refresh_token: str) -> TokenSet:
        if not self.is_configured():
            raise ProviderNotConfiguredError(self.name)
        return await post_token_form(
            self.name,
            REDDIT_TOKEN_URL,
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            TokenRefreshError,
            self._timeout,
            auth=self._basic_auth(),
        )
