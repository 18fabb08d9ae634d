"""
Port definitions (interfaces) for the core domain.

Ports define the contracts between the core domain and external systems.
Infrastructure adapters implement these ports.
"""

from typing import Protocol

from lifehub.core.domain import TokenSet


class OAuthProvider(Protocol):
    """
    Port (interface) for an OAuth2 identity/data provider.

    Implementations are flat classes (one per provider) holding only their
    captured configuration. The registry looks them up by ``name``.
    """

    name: str

    def is_configured(self) -> bool:
        """True iff the client id and redirect URI are present."""
        ...

    def build_authorization_url(self, state: str) -> str:
        """
        Build the provider's authorization URL.

        Args:
            state: Opaque value echoed back on the callback

        Returns:
            Absolute URL to send the browser to

        Raises:
            ProviderNotConfiguredError: If is_configured() is False
        """
        ...

    async def exchange_code_for_tokens(self, code: str) -> TokenSet:
        """
        Exchange an authorization code for tokens.

        Raises:
            TokenExchangeError: If the response is not a usable token set
        """
        ...

    async def refresh_tokens(self, refresh_token: str) -> TokenSet:
        """
        Obtain fresh tokens with a refresh token.

        Raises:
            TokenRefreshError: If the response is not a usable token set
        """
        ...
