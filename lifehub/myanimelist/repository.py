"""
MyAnimeList repository interface and implementations.

Defines the port (interface) for linked-account, token, history and catalog
persistence. Includes an in-memory implementation for testing and
development. Firestore implementation is available when configured.

Every write is an upsert on the record's natural key, so repeated writes
are idempotent and safe to retry.
"""

import logging
import os
from datetime import datetime
from typing import Iterable, Protocol

from lifehub.core.domain import CatalogItem, HistoryRow, LinkedAccount, StoredTokens


logger = logging.getLogger(__name__)


def _is_firestore_configured() -> bool:
    """Check if Firestore is configured via environment."""
    project_id = os.getenv("GCP_PROJECT_ID") or os.getenv("GOOGLE_CLOUD_PROJECT")
    return project_id is not None


class MALRepository(Protocol):
    """
    Protocol defining the MyAnimeList persistence interface.

    Implementations raise RepositoryError when the backend fails.
    """

    async def get_account(self, user_id: str) -> LinkedAccount | None:
        """Linked account for a local user, or None."""
        ...

    async def upsert_account(self, account: LinkedAccount) -> None:
        """
        Insert or merge a linked account keyed by user_id.

        Fields set to None on ``account`` do not clear stored values, so a
        re-link keeps the previous ``synced_at``.
        """
        ...

    async def mark_synced(self, user_id: str, synced_at: datetime) -> None:
        """Set ``synced_at`` on an existing account."""
        ...

    async def get_tokens(self, user_id: str) -> StoredTokens | None:
        ...

    async def upsert_tokens(self, tokens: StoredTokens) -> None:
        """Insert or replace the encrypted tokens keyed by user_id."""
        ...

    async def upsert_history(self, rows: Iterable[HistoryRow]) -> None:
        """Insert or replace rows keyed by (user_id, mal_id, episode)."""
        ...

    async def list_recent_history(self, user_id: str, limit: int) -> list[HistoryRow]:
        """Newest ``limit`` rows by watched_at."""
        ...

    async def upsert_catalog(self, items: Iterable[CatalogItem]) -> None:
        """Insert or merge catalog items keyed by mal_id.

        None fields keep stored values, so a history sync never clears a
        picture cached from the seasonal list.
        """
        ...

    async def get_catalog(self, mal_ids: Iterable[int]) -> dict[int, CatalogItem]:
        """Cached catalog items for the given ids (missing ids are omitted)."""
        ...


class InMemoryMALRepository(MALRepository):
    """
    In-memory implementation of MALRepository.

    Useful for testing and local development without Firestore.
    Data is lost when the application restarts.
    """

    def __init__(self):
        self.accounts: dict[str, LinkedAccount] = {}
        self.tokens: dict[str, StoredTokens] = {}
        self.history: dict[tuple[str, int, int], HistoryRow] = {}
        self.catalog: dict[int, CatalogItem] = {}

    async def get_account(self, user_id: str) -> LinkedAccount | None:
        return self.accounts.get(user_id)

    async def upsert_account(self, account: LinkedAccount) -> None:
        existing = self.accounts.get(account.user_id)
        if existing is None:
            self.accounts[account.user_id] = account.model_copy()
        else:
            updates = account.model_dump(exclude_none=True)
            self.accounts[account.user_id] = existing.model_copy(update=updates)
        logger.info(f"Upserted MAL account for user {account.user_id}")

    async def mark_synced(self, user_id: str, synced_at: datetime) -> None:
        existing = self.accounts.get(user_id)
        if existing is not None:
            self.accounts[user_id] = existing.model_copy(
                update={"synced_at": synced_at}
            )

    async def get_tokens(self, user_id: str) -> StoredTokens | None:
        return self.tokens.get(user_id)

    async def upsert_tokens(self, tokens: StoredTokens) -> None:
        existing = self.tokens.get(tokens.user_id)
        if existing is not None:
            tokens = tokens.model_copy(update={"created_at": existing.created_at})
        self.tokens[tokens.user_id] = tokens

    async def upsert_history(self, rows: Iterable[HistoryRow]) -> None:
        for row in rows:
            self.history[row.key] = row

    async def list_recent_history(self, user_id: str, limit: int) -> list[HistoryRow]:
        rows = [r for r in self.history.values() if r.user_id == user_id]
        rows.sort(key=lambda r: r.watched_at, reverse=True)
        return rows[:limit]

    async def upsert_catalog(self, items: Iterable[CatalogItem]) -> None:
        for item in items:
            existing = self.catalog.get(item.mal_id)
            if existing is None:
                self.catalog[item.mal_id] = item
            else:
                self.catalog[item.mal_id] = existing.model_copy(
                    update=item.model_dump(exclude_none=True)
                )

    async def get_catalog(self, mal_ids: Iterable[int]) -> dict[int, CatalogItem]:
        return {i: self.catalog[i] for i in set(mal_ids) if i in self.catalog}


# Singleton instance for dependency injection
_repository: MALRepository | None = None


def get_mal_repository() -> MALRepository:
    """
    Get the MyAnimeList repository singleton.

    Uses Firestore if GCP_PROJECT_ID is set, otherwise in-memory.
    """
    global _repository

    if _repository is None:
        if _is_firestore_configured():
            from lifehub.infrastructure.firestore import get_firestore_client
            from lifehub.infrastructure.firestore_mal_repository import (
                FirestoreMALRepository,
            )

            _repository = FirestoreMALRepository(get_firestore_client())
            logger.info("Using FirestoreMALRepository")
        else:
            _repository = InMemoryMALRepository()
            logger.info("Using InMemoryMALRepository (Firestore not configured)")

    return _repository


def set_mal_repository(repository: MALRepository | None) -> None:
    """
    Set the repository instance (for testing).

    Args:
        repository: Repository to use, or None to reset
    """
    global _repository
    _repository = repository
