"""
FastAPI dependencies for the generic OAuth provider endpoints.
"""

from typing import Annotated

from fastapi import Depends

from lifehub.auth.dependencies import get_current_user
from lifehub.core.domain import PendingAuthorization, TokenHandoff
from lifehub.integrations.config import IntegrationsConfig, get_integrations_config
from lifehub.integrations.handoff_store import HandoffStore
from lifehub.integrations.registry import ProviderRegistry, get_provider_registry


# Global store singletons
_state_store: HandoffStore[PendingAuthorization] | None = None
_token_store: HandoffStore[TokenHandoff] | None = None


def get_state_store() -> HandoffStore[PendingAuthorization]:
    """Pending authorizations keyed by OAuth state."""
    global _state_store
    if _state_store is None:
        _state_store = HandoffStore()
    return _state_store


def get_token_store() -> HandoffStore[TokenHandoff]:
    """Exchanged tokens waiting for the browser to collect them."""
    global _token_store
    if _token_store is None:
        _token_store = HandoffStore()
    return _token_store


def reset_handoff_stores() -> None:
    """
    Reset both stores.

    Useful for testing to ensure clean state between tests.
    """
    global _state_store, _token_store
    _state_store = None
    _token_store = None


def get_registry() -> ProviderRegistry:
    """Provide ProviderRegistry dependency."""
    return get_provider_registry()


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[dict, Depends(get_current_user)]
Registry = Annotated[ProviderRegistry, Depends(get_registry)]
Config = Annotated[IntegrationsConfig, Depends(get_integrations_config)]
StateStore = Annotated[HandoffStore[PendingAuthorization], Depends(get_state_store)]
TokenStore = Annotated[HandoffStore[TokenHandoff], Depends(get_token_store)]
