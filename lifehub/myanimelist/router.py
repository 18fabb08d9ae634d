"""
MyAnimeList API endpoints.

- POST /api/mal/link/start - Begin PKCE linking, returns the authorize URL
- GET /api/mal/link/callback - OAuth callback, redirects the browser
- POST /api/mal/sync - Pull latest watch history (cooldown-limited)
- GET /api/mal/profile - Linked account, or null
- GET /api/mal/recent - Recent watch history with titles
- GET /api/mal/seasonal - Current season lineup

Domain errors propagate as IntegrationError and are rendered by the
exception handler in main.py.
"""

import logging

from fastapi import APIRouter, status
from fastapi.responses import RedirectResponse

from lifehub.myanimelist.dependencies import CurrentUser, MALService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mal", tags=["myanimelist"])


@router.post("/link/start")
async def link_start(user: CurrentUser, service: MALService):
    """
    Start linking the caller's MyAnimeList account.

    Returns:
        {"url": authorization URL}; the browser navigates there
    """
    url = service.start_link(user["uid"])
    return {"url": url}


@router.get("/link/callback")
async def link_callback(
    service: MALService,
    code: str | None = None,
    state: str | None = None,
):
    """
    Handle the MyAnimeList OAuth callback.

    Unauthenticated: the caller is identified by the state issued at start.
    """
    redirect_url = await service.complete_link(code, state)
    return RedirectResponse(url=redirect_url, status_code=status.HTTP_302_FOUND)


@router.post("/sync")
async def sync(user: CurrentUser, service: MALService):
    count = await service.sync(user["uid"])
    return {"ok": True, "count": count}


@router.get("/profile")
async def profile(user: CurrentUser, service: MALService):
    """Linked account fields plus ``sync_available``, or null if not linked."""
    account, sync_available = await service.profile(user["uid"])
    if account is None:
        return None
    return {**account.public_fields(), "sync_available": sync_available}


@router.get("/recent")
async def recent(user: CurrentUser, service: MALService):
    items = await service.recent(user["uid"])
    return {"items": [item.model_dump(mode="json") for item in items]}


@router.get("/seasonal")
async def seasonal(user: CurrentUser, service: MALService):
    items = await service.seasonal()
    return {"items": [item.model_dump(mode="json") for item in items]}
