"""
FastAPI dependencies for MyAnimeList endpoints.

Provides dependency injection for the link service and its collaborators.
"""

from typing import Annotated

from fastapi import Depends

from lifehub.auth.dependencies import get_current_user
from lifehub.core.domain import PendingLink
from lifehub.integrations.handoff_store import HandoffStore
from lifehub.myanimelist.client import MyAnimeListClient
from lifehub.myanimelist.config import MALConfig, get_mal_config
from lifehub.myanimelist.repository import MALRepository, get_mal_repository
from lifehub.myanimelist.service import MALLinkService


# Shared by /link/start and /link/callback
_handoffs: HandoffStore[PendingLink] | None = None


def get_mal_handoff_store() -> HandoffStore[PendingLink]:
    """Process-wide store of pending PKCE link attempts."""
    global _handoffs
    if _handoffs is None:
        _handoffs = HandoffStore()
    return _handoffs


def reset_mal_handoff_store() -> None:
    """
    Reset the handoff store.

    Useful for testing to ensure clean state between tests.
    """
    global _handoffs
    _handoffs = None


def get_repository() -> MALRepository:
    """Provide MALRepository dependency."""
    return get_mal_repository()


def get_mal_service(
    config: Annotated[MALConfig, Depends(get_mal_config)],
    repository: Annotated[MALRepository, Depends(get_repository)],
    handoffs: Annotated[HandoffStore[PendingLink], Depends(get_mal_handoff_store)],
) -> MALLinkService:
    return MALLinkService(
        config=config,
        client=MyAnimeListClient(config),
        repository=repository,
        handoffs=handoffs,
    )


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[dict, Depends(get_current_user)]
MALService = Annotated[MALLinkService, Depends(get_mal_service)]
