"""
Core domain models for account linking.

These models represent the business domain and are independent of
any infrastructure or delivery mechanism. Upstream JSON is decoded into
these models at the HTTP boundary; untyped payloads never travel further.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(UTC)


class LinkState(str, Enum):
    """Lifecycle of a single linking attempt."""

    NOT_STARTED = "not_started"
    AWAITING_CALLBACK = "awaiting_callback"
    LINKED = "linked"
    FAILED = "failed"


class TokenSet(BaseModel):
    """
    OAuth2 token endpoint response.

    Only ``access_token`` is required. Provider-specific fields
    (``id_token``, ``ext_expires_in``...) are kept as extras.
    """

    access_token: str = Field(min_length=1)
    refresh_token: str | None = None
    expires_in: int | None = None
    token_type: str = "Bearer"
    scope: str | None = None

    model_config = ConfigDict(extra="allow")


class ProviderStatus(BaseModel):
    name: str
    configured: bool


# =============================================================================
# Handoff payloads
# =============================================================================


@dataclass(frozen=True)
class PendingLink:
    """Data the PKCE callback needs, keyed by the OAuth state."""

    user_id: str
    code_verifier: str


@dataclass(frozen=True)
class PendingAuthorization:
    user_id: str
    provider: str


@dataclass(frozen=True)
class TokenHandoff:
    """Tokens parked for the browser to collect after a generic callback."""

    user_id: str
    provider: str
    tokens: TokenSet


# =============================================================================
# MyAnimeList
# =============================================================================


class AnimeStatistics(BaseModel):
    mean_score: float | None = None
    num_days: float | None = None

    model_config = ConfigDict(extra="ignore")


class MALProfile(BaseModel):
    """Snapshot of ``GET /v2/users/@me``."""

    id: int
    name: str | None = None
    picture: str | None = None
    anime_statistics: AnimeStatistics | None = None

    model_config = ConfigDict(extra="ignore")


class LinkedAccount(BaseModel):
    """
    A local user's linked MyAnimeList account.

    At most one per local user; ``synced_at`` gates the sync cooldown.
    """

    user_id: str
    mal_user_id: int | None = None
    mal_username: str | None = None
    display_name: str | None = None
    avatar_url: str | None = None
    mean_score: float | None = None
    days_watched: float | None = None
    linked_at: datetime = Field(default_factory=utcnow)
    synced_at: datetime | None = None

    @classmethod
    def from_profile(
        cls, user_id: str, profile: MALProfile, linked_at: datetime
    ) -> "LinkedAccount":
        stats = profile.anime_statistics or AnimeStatistics()
        return cls(
            user_id=user_id,
            mal_user_id=profile.id,
            mal_username=profile.name,
            display_name=profile.name,
            avatar_url=profile.picture,
            mean_score=stats.mean_score,
            days_watched=stats.num_days,
            linked_at=linked_at,
        )

    def public_fields(self) -> dict[str, Any]:
        """Fields returned by the profile endpoint."""
        return self.model_dump(mode="json", exclude={"user_id"})


class StoredTokens(BaseModel):
    """Encrypted access/refresh tokens, base64 fields."""

    user_id: str
    access_encrypted: str
    iv: str
    auth_tag: str
    refresh_encrypted: str | None = None
    refresh_iv: str | None = None
    refresh_auth_tag: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class HistoryItem(BaseModel):
    """One normalized upstream history entry."""

    mal_id: int
    episode: int
    watched_at: datetime
    title: str | None = None


class HistoryRow(BaseModel):
    """Persisted watch history, unique on (user_id, mal_id, episode)."""

    user_id: str
    mal_id: int
    episode: int
    watched_at: datetime

    @property
    def key(self) -> tuple[str, int, int]:
        return (self.user_id, self.mal_id, self.episode)


class CatalogItem(BaseModel):
    """Cached catalog entry shared across users."""

    mal_id: int
    title: str | None = None
    main_picture: str | None = None
    updated_at: datetime = Field(default_factory=utcnow)

    def display_title(self) -> str:
        return self.title or f"Anime #{self.mal_id}"


class RecentItem(BaseModel):
    mal_id: int
    episode: int
    watched_at: datetime
    title: str
    main_picture: str | None = None
