"""
Shared HTTP helpers for provider token endpoints.
"""

import logging
from typing import Any, Callable

import httpx
from authlib.common.urls import add_params_to_uri
from pydantic import ValidationError

from lifehub.core.domain import TokenSet
from lifehub.core.exceptions import IntegrationError, UpstreamUnavailableError


logger = logging.getLogger(__name__)


def build_url(base: str, params: dict[str, str]) -> str:
    """Append query parameters to ``base`` in insertion order."""
    return add_params_to_uri(base, list(params.items()))


async def post_token_form(
    provider: str,
    url: str,
    data: dict[str, Any],
    error_cls: Callable[..., IntegrationError],
    timeout: float,
    auth: tuple[str, str] | None = None,
) -> TokenSet:
    """
    POST a form-encoded grant to a token endpoint and decode the response.

    HTTP status is not inspected beyond the body: a body that is not JSON or
    lacks ``access_token`` is a failure whatever the status.

    Args:
        provider: Provider name for errors and logs
        url: Token endpoint
        data: Form fields (grant_type, code/refresh_token, ...)
        error_cls: TokenExchangeError or TokenRefreshError
        timeout: Request timeout in seconds
        auth: Optional HTTP Basic client credentials

    Returns:
        Validated TokenSet

    Raises:
        error_cls: On unparseable or incomplete responses
        UpstreamUnavailableError: On timeout or transport failure
    """
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(
                url,
                data=data,
                auth=auth,
                headers={"Accept": "application/json"},
            )
    except httpx.TimeoutException as e:
        logger.warning(
            f"Token endpoint timed out for {provider}",
            extra={"provider": provider},
        )
        raise UpstreamUnavailableError(f"{provider} token endpoint timed out") from e
    except httpx.RequestError as e:
        logger.warning(
            f"Token endpoint unreachable for {provider}: {type(e).__name__}",
            extra={"provider": provider},
        )
        raise UpstreamUnavailableError(f"{provider} token endpoint unreachable") from e

    try:
        return TokenSet.model_validate(response.json())
    except (ValueError, ValidationError) as e:
        logger.error(
            f"Unusable token response from {provider}",
            extra={"provider": provider, "status_code": response.status_code},
        )
        raise error_cls(provider, response.status_code) from e
