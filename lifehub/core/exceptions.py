"""
Domain exceptions for the integration flows.

Every externally visible failure is an IntegrationError carrying a stable,
machine-readable code and the HTTP status it maps to. They are caught by the
centralized exception handler in main.py and rendered as ``{"error": code}``.
"""

from typing import Any

from fastapi import status


class IntegrationError(Exception):
    """Base class for failures surfaced to API clients."""

    code: str = "integration_error"
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)

    def to_body(self) -> dict[str, Any]:
        """Build the JSON response body."""
        return {"error": self.code}

    def headers(self) -> dict[str, str] | None:
        """Extra response headers, if any."""
        return None


# =============================================================================
# Configuration errors (5xx, need operator intervention)
# =============================================================================


class ServerNotConfiguredError(IntegrationError):
    """Required client id / redirect URI / backend settings are missing."""

    code = "server_not_configured"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ProviderNotConfiguredError(IntegrationError):
    """A registered provider is missing its client credentials."""

    code = "provider_not_configured"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, provider: str):
        super().__init__(f"Provider not configured: {provider}")
        self.provider = provider


# =============================================================================
# Client input errors (400, restart the flow)
# =============================================================================


class UnsupportedProviderError(IntegrationError):
    code = "unsupported_provider"

    def __init__(self, provider: str):
        super().__init__(f"Unsupported provider: {provider}")
        self.provider = provider


class MissingCodeOrStateError(IntegrationError):
    code = "missing_code_or_state"


class InvalidStateError(IntegrationError):
    """The OAuth state is unknown, expired, or was already consumed."""

    code = "invalid_state"


class HandoffNotFoundError(IntegrationError):
    code = "handoff_not_found"
    status_code = status.HTTP_404_NOT_FOUND


# =============================================================================
# Upstream provider errors
# =============================================================================


class TokenExchangeError(IntegrationError):
    """The provider did not return a usable token for the authorization code."""

    code = "token_exchange_failed"

    def __init__(self, provider: str, upstream_status: int | None = None):
        super().__init__(f"Token exchange failed for {provider}")
        self.provider = provider
        self.upstream_status = upstream_status


class TokenRefreshError(IntegrationError):
    code = "token_refresh_failed"

    def __init__(self, provider: str, upstream_status: int | None = None):
        super().__init__(f"Token refresh failed for {provider}")
        self.provider = provider
        self.upstream_status = upstream_status


class NoAccessTokenError(IntegrationError):
    code = "no_access_token"


class ProfileFetchError(IntegrationError):
    code = "profile_fetch_failed"


class HistoryFetchError(IntegrationError):
    code = "history_fetch_failed"


class SeasonalFetchError(IntegrationError):
    code = "seasonal_fetch_failed"


class UpstreamUnavailableError(IntegrationError):
    """
    The provider could not be reached (timeout, connection failure).

    Unlike a 4xx rejection this is transient; the caller may retry.
    """

    code = "upstream_unavailable"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT


# =============================================================================
# Linked-account state errors
# =============================================================================


class NotLinkedError(IntegrationError):
    code = "not_linked"


class MissingAccessTokenError(IntegrationError):
    """No usable stored credential; the user must link the account again."""

    code = "missing_access_token"


class AccountStoreError(IntegrationError):
    code = "account_store_failed"


class ReadError(IntegrationError):
    code = "read_failed"


class CooldownError(IntegrationError):
    """Sync requested again before the cooldown elapsed."""

    code = "too_many_requests"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, retry_after_sec: int):
        super().__init__(f"Retry after {retry_after_sec}s")
        self.retry_after_sec = retry_after_sec

    def to_body(self) -> dict[str, Any]:
        return {"error": self.code, "retryAfterSec": self.retry_after_sec}

    def headers(self) -> dict[str, str] | None:
        return {"Retry-After": str(self.retry_after_sec)}


# =============================================================================
# Internal errors (never rendered directly)
# =============================================================================


class RepositoryError(Exception):
    """Raised when the persistence backend fails."""

    pass
