"""
Client for the MyAnimeList OAuth and v2 APIs.

Every call has an explicit timeout. Transport failures and timeouts raise
UpstreamUnavailableError (transient); non-2xx answers raise the
endpoint-specific error. Upstream bodies are never logged.
"""

import logging
from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from lifehub.core.domain import CatalogItem, HistoryItem, MALProfile, TokenSet
from lifehub.core.exceptions import (
    HistoryFetchError,
    IntegrationError,
    NoAccessTokenError,
    ProfileFetchError,
    SeasonalFetchError,
    ServerNotConfiguredError,
    TokenExchangeError,
    UpstreamUnavailableError,
)
from lifehub.integrations.http import build_url
from lifehub.myanimelist.config import (
    HISTORY_PAGE_SIZE,
    MAL_API_BASE_URL,
    MAL_AUTHORIZE_URL,
    MAL_SCOPE,
    MAL_TOKEN_URL,
    SEASONAL_PAGE_SIZE,
    MALConfig,
)
from lifehub.myanimelist.normalize import normalize_history, normalize_seasonal
from lifehub.myanimelist.pkce import CODE_CHALLENGE_METHOD, code_challenge


logger = logging.getLogger(__name__)

PROVIDER = "myanimelist"


class MyAnimeListClient:
    """
    Thin async wrapper over the MAL endpoints used by the linking flow.
    """

    def __init__(self, config: MALConfig):
        self.config = config

    async def _send(
        self,
        event: str,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.config.http_timeout) as client:
                return await client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"MAL request timed out: {event}", extra={"event": event})
            raise UpstreamUnavailableError(f"MAL {event} timed out") from e
        except httpx.RequestError as e:
            logger.warning(
                f"MAL request failed: {event}: {type(e).__name__}",
                extra={"event": event},
            )
            raise UpstreamUnavailableError(f"MAL {event} unreachable") from e

    def _check(
        self, event: str, response: httpx.Response, error: IntegrationError
    ) -> None:
        if response.is_success:
            return
        # Status only; the body may echo credentials
        logger.error(
            f"MAL {event} failed",
            extra={"event": event, "status_code": response.status_code},
        )
        raise error

    def build_authorization_url(self, state: str, code_verifier: str) -> str:
        """
        Authorization URL carrying the S256 challenge for ``code_verifier``.

        Raises:
            ServerNotConfiguredError: If client id or redirect URI is missing
        """
        if not self.config.can_link():
            raise ServerNotConfiguredError("MAL client id / redirect URI missing")
        return build_url(
            MAL_AUTHORIZE_URL,
            {
                "response_type": "code",
                "client_id": self.config.client_id,
                "code_challenge": code_challenge(code_verifier),
                "code_challenge_method": CODE_CHALLENGE_METHOD,
                "state": state,
                "redirect_uri": self.config.redirect_uri,
                "scope": MAL_SCOPE,
            },
        )

    async def exchange_code(self, code: str, code_verifier: str) -> TokenSet:
        """
        Exchange an authorization code using the PKCE verifier.

        Raises:
            TokenExchangeError: Non-2xx or non-JSON response
            NoAccessTokenError: Response without access_token
        """
        if not self.config.can_link():
            raise ServerNotConfiguredError("MAL client id / redirect URI missing")

        data = {
            "client_id": self.config.client_id,
            "code": code,
            "code_verifier": code_verifier,
            "grant_type": "authorization_code",
            "redirect_uri": self.config.redirect_uri,
        }
        if self.config.client_secret:
            data["client_secret"] = self.config.client_secret

        response = await self._send("token_exchange", "POST", MAL_TOKEN_URL, data=data)
        self._check(
            "token_exchange",
            response,
            TokenExchangeError(PROVIDER, response.status_code),
        )

        try:
            body = response.json()
        except ValueError as e:
            logger.error("MAL token response is not JSON")
            raise TokenExchangeError(PROVIDER, response.status_code) from e

        try:
            return TokenSet.model_validate(body)
        except ValidationError as e:
            raise NoAccessTokenError("MAL token response has no access_token") from e

    async def fetch_profile(self, access_token: str) -> MALProfile:
        """Fetch ``/users/@me`` with anime statistics."""
        response = await self._send(
            "profile_fetch",
            "GET",
            f"{MAL_API_BASE_URL}/users/@me",
            params={"fields": "anime_statistics"},
            headers={"Authorization": f"Bearer {access_token}"},
        )
        self._check("profile_fetch", response, ProfileFetchError())

        try:
            return MALProfile.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error("MAL profile response could not be decoded")
            raise ProfileFetchError() from e

    async def fetch_history(
        self,
        username: str,
        access_token: str,
        now: datetime,
        limit: int = HISTORY_PAGE_SIZE,
    ) -> list[HistoryItem]:
        """Fetch and normalize the user's latest anime history."""
        response = await self._send(
            "history_fetch",
            "GET",
            f"{MAL_API_BASE_URL}/users/{quote(username, safe='')}/history",
            params={"type": "anime", "limit": limit},
            headers={"Authorization": f"Bearer {access_token}"},
        )
        self._check("history_fetch", response, HistoryFetchError())

        try:
            payload = response.json()
        except ValueError as e:
            logger.error("MAL history response is not JSON")
            raise HistoryFetchError() from e
        return normalize_history(payload, now)

    async def fetch_seasonal(
        self, year: int, season: str, now: datetime
    ) -> list[CatalogItem]:
        """Fetch a season's lineup, most-listed first."""
        if not self.config.client_id:
            raise ServerNotConfiguredError("MAL client id missing")

        response = await self._send(
            "seasonal_fetch",
            "GET",
            f"{MAL_API_BASE_URL}/anime/season/{year}/{season}",
            params={"limit": SEASONAL_PAGE_SIZE, "sort": "anime_num_list_users"},
            headers={"X-MAL-CLIENT-ID": self.config.client_id},
        )
        self._check("seasonal_fetch", response, SeasonalFetchError())

        try:
            payload = response.json()
        except ValueError as e:
            logger.error("MAL seasonal response is not JSON")
            raise SeasonalFetchError() from e
        return normalize_seasonal(payload, now)
