"""
Generic OAuth2 provider endpoints.

- GET /integrations/providers - Registered providers and configured flags
- GET /integrations/oauth/start - Authorization URL for a provider
- GET /integrations/oauth/callback/{provider} - Exchange code, redirect browser
- GET /integrations/oauth/handoff - Collect tokens parked by the callback
- POST /integrations/oauth/refresh - Refresh an access token

The callback never renders an error page: the browser always lands on the
configured redirect URL, with either a handoff id or an error reason.
"""

import logging
from uuid import uuid4

from fastapi import APIRouter, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from lifehub.core.domain import PendingAuthorization, TokenHandoff
from lifehub.core.exceptions import (
    HandoffNotFoundError,
    IntegrationError,
    InvalidStateError,
    MissingCodeOrStateError,
    UnsupportedProviderError,
)
from lifehub.core.ports import OAuthProvider
from lifehub.integrations.dependencies import (
    Config,
    CurrentUser,
    Registry,
    StateStore,
    TokenStore,
)
from lifehub.integrations.http import build_url
from lifehub.integrations.registry import ProviderRegistry


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations", tags=["integrations"])

STATE_PREFIX = "state:"
HANDOFF_PREFIX = "handoff:"


class RefreshRequest(BaseModel):
    provider: str
    refresh_token: str


def _lookup(registry: ProviderRegistry, name: str) -> OAuthProvider:
    provider = registry.get(name.lower())
    if provider is None:
        raise UnsupportedProviderError(name)
    return provider


@router.get("/providers")
async def list_providers(registry: Registry):
    return {"providers": [s.model_dump() for s in registry.list()]}


@router.get("/oauth/start")
async def oauth_start(
    provider: str,
    user: CurrentUser,
    registry: Registry,
    states: StateStore,
):
    """
    Build the authorization URL for ``provider``.

    Returns:
        {"url": authorization URL}

    Raises:
        UnsupportedProviderError: Unknown provider name
        ProviderNotConfiguredError: Provider is missing credentials
    """
    oauth_provider = _lookup(registry, provider)
    state = str(uuid4())
    url = oauth_provider.build_authorization_url(state)

    states.put(
        STATE_PREFIX + state,
        PendingAuthorization(user_id=user["uid"], provider=oauth_provider.name),
    )
    logger.info(
        f"Starting OAuth flow for provider: {oauth_provider.name}",
        extra={"user_id": user["uid"], "provider": oauth_provider.name},
    )
    return {"url": url}


async def _complete(
    provider: str,
    code: str | None,
    state: str | None,
    registry,
    states,
    tokens,
) -> str:
    oauth_provider = _lookup(registry, provider)
    if not code or not state:
        raise MissingCodeOrStateError()

    pending = states.take(STATE_PREFIX + state)
    if pending is None or pending.provider != oauth_provider.name:
        raise InvalidStateError()

    token_set = await oauth_provider.exchange_code_for_tokens(code)

    handoff_id = str(uuid4())
    tokens.put(
        HANDOFF_PREFIX + handoff_id,
        TokenHandoff(
            user_id=pending.user_id,
            provider=oauth_provider.name,
            tokens=token_set,
        ),
    )
    logger.info(
        f"OAuth tokens ready for handoff: {oauth_provider.name}",
        extra={"user_id": pending.user_id, "provider": oauth_provider.name},
    )
    return handoff_id


@router.get("/oauth/callback/{provider}")
async def oauth_callback(
    provider: str,
    config: Config,
    registry: Registry,
    states: StateStore,
    tokens: TokenStore,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
):
    """
    Handle the provider redirect.

    Always answers 302 to the configured landing page:
    ``?handoff=<id>&provider=<name>`` on success,
    ``?oauth=error&provider=<name>&reason=<code>`` on failure.
    """
    if error:
        logger.warning(
            f"Provider returned an OAuth error: {provider}",
            extra={"provider": provider, "error": error},
        )
        params = {"oauth": "error", "provider": provider, "reason": error}
    else:
        try:
            handoff_id = await _complete(
                provider, code, state, registry, states, tokens
            )
            params = {"handoff": handoff_id, "provider": provider}
        except IntegrationError as e:
            logger.warning(
                f"OAuth callback failed for {provider}: {e.code}",
                extra={"provider": provider, "error": e.code},
            )
            params = {"oauth": "error", "provider": provider, "reason": e.code}

    return RedirectResponse(
        url=build_url(config.redirect_url, params),
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/oauth/handoff")
async def oauth_handoff(id: str, user: CurrentUser, tokens: TokenStore):
    """
    Collect tokens parked by the callback.

    Only the user who started the flow may collect them, and only once.
    Anyone else gets 404 and the record stays in place.
    """
    key = HANDOFF_PREFIX + id
    handoff = tokens.peek(key)
    if handoff is None or handoff.user_id != user["uid"]:
        raise HandoffNotFoundError()

    handoff = tokens.take(key)
    if handoff is None:
        raise HandoffNotFoundError()

    return {
        "provider": handoff.provider,
        "tokens": handoff.tokens.model_dump(exclude_none=True),
    }


@router.post("/oauth/refresh")
async def oauth_refresh(body: RefreshRequest, user: CurrentUser, registry: Registry):
    oauth_provider = _lookup(registry, body.provider)
    token_set = await oauth_provider.refresh_tokens(body.refresh_token)

    logger.info(
        f"Refreshed OAuth token for {oauth_provider.name}",
        extra={"user_id": user["uid"], "provider": oauth_provider.name},
    )
    return {
        "provider": oauth_provider.name,
        "tokens": token_set.model_dump(exclude_none=True),
    }
