"""
Firestore implementation of MALRepository.

This is a driven adapter that implements the MALRepository interface.
Document ids are derived from each record's natural key, so every write is
an upsert and retries never duplicate rows.
"""

import logging
from datetime import datetime
from typing import Any, Iterable

from google.api_core.exceptions import GoogleAPIError
from google.cloud.firestore_v1 import AsyncClient, AsyncQuery
from google.cloud.firestore_v1.base_query import FieldFilter

from lifehub.core.domain import CatalogItem, HistoryRow, LinkedAccount, StoredTokens
from lifehub.core.exceptions import RepositoryError

logger = logging.getLogger(__name__)

ACCOUNTS = "mal_accounts"
TOKENS = "mal_tokens"
HISTORY = "mal_watch_history"
CATALOG = "mal_anime"


def history_doc_id(row: HistoryRow) -> str:
    return f"{row.user_id}_{row.mal_id}_{row.episode}"


class FirestoreMALRepository:
    """
    Firestore implementation of MALRepository.

    Data model:
    - mal_accounts/{user_id}: LinkedAccount fields
    - mal_tokens/{user_id}: StoredTokens fields (ciphertext, iv, tag)
    - mal_watch_history/{user_id}_{mal_id}_{episode}: HistoryRow fields
    - mal_anime/{mal_id}: CatalogItem fields (shared across users)

    list_recent_history needs a composite index on
    mal_watch_history (user_id ASC, watched_at DESC).
    """

    def __init__(self, db: AsyncClient):
        """
        Initialize Firestore repository.

        Args:
            db: Firestore async client instance
        """
        self._db = db
        self._accounts = db.collection(ACCOUNTS)
        self._tokens = db.collection(TOKENS)
        self._history = db.collection(HISTORY)
        self._catalog = db.collection(CATALOG)

    async def _get_dict(self, collection: Any, doc_id: str) -> dict[str, Any] | None:
        try:
            doc = await collection.document(doc_id).get()
        except GoogleAPIError as e:
            logger.error(f"Firestore read failed: {type(e).__name__}")
            raise RepositoryError(f"Read failed: {e}") from e
        if not doc.exists:
            return None
        return doc.to_dict()

    async def _commit(self, writes: list[tuple[Any, dict[str, Any]]]) -> None:
        """Write documents in one batch with merge semantics."""
        if not writes:
            return
        batch = self._db.batch()
        for ref, data in writes:
            batch.set(ref, data, merge=True)
        try:
            await batch.commit()
        except GoogleAPIError as e:
            logger.error(f"Firestore batch write failed: {type(e).__name__}")
            raise RepositoryError(f"Write failed: {e}") from e

    async def get_account(self, user_id: str) -> LinkedAccount | None:
        data = await self._get_dict(self._accounts, user_id)
        if data is None:
            return None
        data["user_id"] = user_id
        return LinkedAccount.model_validate(data)

    async def upsert_account(self, account: LinkedAccount) -> None:
        await self._commit(
            [
                (
                    self._accounts.document(account.user_id),
                    account.model_dump(exclude_none=True),
                )
            ]
        )
        logger.info(f"Upserted MAL account for user {account.user_id}")

    async def mark_synced(self, user_id: str, synced_at: datetime) -> None:
        await self._commit(
            [(self._accounts.document(user_id), {"synced_at": synced_at})]
        )

    async def get_tokens(self, user_id: str) -> StoredTokens | None:
        data = await self._get_dict(self._tokens, user_id)
        if data is None:
            return None
        data["user_id"] = user_id
        return StoredTokens.model_validate(data)

    async def upsert_tokens(self, tokens: StoredTokens) -> None:
        try:
            await self._tokens.document(tokens.user_id).set(tokens.model_dump())
        except GoogleAPIError as e:
            logger.error(f"Firestore token write failed: {type(e).__name__}")
            raise RepositoryError(f"Write failed: {e}") from e
        logger.info(f"Saved MAL tokens for user {tokens.user_id}")

    async def upsert_history(self, rows: Iterable[HistoryRow]) -> None:
        await self._commit(
            [(self._history.document(history_doc_id(r)), r.model_dump()) for r in rows]
        )

    async def list_recent_history(self, user_id: str, limit: int) -> list[HistoryRow]:
        query = (
            self._history.where(filter=FieldFilter("user_id", "==", user_id))
            .order_by("watched_at", direction=AsyncQuery.DESCENDING)
            .limit(limit)
        )
        rows: list[HistoryRow] = []
        try:
            async for doc in query.stream():
                data = doc.to_dict()
                if data is None:
                    continue
                rows.append(HistoryRow.model_validate(data))
        except GoogleAPIError as e:
            logger.error(f"Firestore history query failed: {type(e).__name__}")
            raise RepositoryError(f"Read failed: {e}") from e
        return rows

    async def upsert_catalog(self, items: Iterable[CatalogItem]) -> None:
        await self._commit(
            [
                (self._catalog.document(str(i.mal_id)), i.model_dump(exclude_none=True))
                for i in items
            ]
        )

    async def get_catalog(self, mal_ids: Iterable[int]) -> dict[int, CatalogItem]:
        refs = [self._catalog.document(str(i)) for i in set(mal_ids)]
        if not refs:
            return {}

        items: dict[int, CatalogItem] = {}
        try:
            async for doc in self._db.get_all(refs):
                if not doc.exists:
                    continue
                data = doc.to_dict() or {}
                data.setdefault("mal_id", int(doc.id))
                item = CatalogItem.model_validate(data)
                items[item.mal_id] = item
        except GoogleAPIError as e:
            logger.error(f"Firestore catalog read failed: {type(e).__name__}")
            raise RepositoryError(f"Read failed: {e}") from e
        return items
