"""
MyAnimeList account linking and sync.

Orchestrates the PKCE linking flow (start -> callback), the on-demand
history sync with its cooldown, and the read endpoints. Persistence goes
through the MALRepository port; upstream calls through MyAnimeListClient.
"""

import logging
import math
from typing import Callable
from uuid import uuid4

from lifehub.core.domain import (
    CatalogItem,
    HistoryRow,
    LinkedAccount,
    LinkState,
    PendingLink,
    RecentItem,
    StoredTokens,
    TokenSet,
    utcnow,
)
from lifehub.core.exceptions import (
    AccountStoreError,
    CooldownError,
    IntegrationError,
    InvalidStateError,
    MissingAccessTokenError,
    MissingCodeOrStateError,
    NotLinkedError,
    ReadError,
    RepositoryError,
    ServerNotConfiguredError,
)
from lifehub.infrastructure.encryption import (
    EncryptedValue,
    EncryptionError,
    decrypt_string,
    encrypt_string,
)
from lifehub.integrations.handoff_store import HandoffStore
from lifehub.myanimelist.client import MyAnimeListClient
from lifehub.myanimelist.config import RECENT_LIMIT, MALConfig
from lifehub.myanimelist.normalize import season_for
from lifehub.myanimelist.pkce import generate_code_verifier
from lifehub.myanimelist.repository import MALRepository


logger = logging.getLogger(__name__)

STATE_PREFIX = "state:"


class MALLinkService:
    """
    Service for the MyAnimeList integration.

    The handoff store is shared between the start and callback requests, so
    the instance passed here must be the process-wide one.
    """

    def __init__(
        self,
        config: MALConfig,
        client: MyAnimeListClient,
        repository: MALRepository,
        handoffs: HandoffStore[PendingLink],
        now: Callable = utcnow,
    ):
        self.config = config
        self.client = client
        self.repository = repository
        self.handoffs = handoffs
        self._now = now

    def _log_state(self, user_id: str, state: LinkState, message: str, **extra):
        logger.info(
            message,
            extra={"user_id": user_id, "link_state": state.value, **extra},
        )

    # -------------------------------------------------------------------------
    # Linking
    # -------------------------------------------------------------------------

    def start_link(self, user_id: str) -> str:
        """
        Begin a link attempt for ``user_id``.

        Returns:
            MyAnimeList authorization URL to send the browser to

        Raises:
            ServerNotConfiguredError: If client id or redirect URI is missing.
                No handoff record is created in that case.
        """
        if not self.config.can_link():
            raise ServerNotConfiguredError("MAL client id / redirect URI missing")

        state = str(uuid4())
        verifier = generate_code_verifier()
        url = self.client.build_authorization_url(state, verifier)

        self.handoffs.put(STATE_PREFIX + state, PendingLink(user_id, verifier))
        self._log_state(user_id, LinkState.AWAITING_CALLBACK, "MAL link started")
        return url

    async def complete_link(self, code: str | None, state: str | None) -> str:
        """
        Finish a link attempt from the OAuth callback.

        The state record is consumed before any network call, so a replayed
        or concurrent callback for the same state fails with invalid_state.

        Returns:
            Browser redirect URL for a successful link
        """
        if not code or not state:
            raise MissingCodeOrStateError()

        pending = self.handoffs.take(STATE_PREFIX + state)
        if pending is None:
            logger.warning("MAL callback with unknown or expired state")
            raise InvalidStateError()

        try:
            if not self.config.can_link():
                raise ServerNotConfiguredError("MAL client id / redirect URI missing")

            tokens = await self.client.exchange_code(code, pending.code_verifier)
            profile = await self.client.fetch_profile(tokens.access_token)

            account = LinkedAccount.from_profile(pending.user_id, profile, self._now())
            try:
                await self.repository.upsert_account(account)
            except RepositoryError as e:
                logger.error(f"Failed to store MAL account: {e}")
                raise AccountStoreError() from e
        except IntegrationError as e:
            self._log_state(
                pending.user_id, LinkState.FAILED, "MAL link failed", error=e.code
            )
            raise

        await self._store_tokens(pending.user_id, tokens)
        self._log_state(
            pending.user_id,
            LinkState.LINKED,
            "MAL account linked",
            mal_user_id=profile.id,
        )
        return self.config.linked_redirect_url

    async def _store_tokens(self, user_id: str, tokens: TokenSet) -> None:
        """Encrypt and persist tokens; the link stands even if this fails."""
        key = self.config.tokens_key
        if key is None:
            logger.warning(
                "MAL_TOKENS_SECRET not configured, tokens not stored",
                extra={"user_id": user_id},
            )
            return

        now = self._now()
        access = encrypt_string(tokens.access_token, key)
        refresh = None
        if tokens.refresh_token:
            refresh = encrypt_string(tokens.refresh_token, key)
        record = StoredTokens(
            user_id=user_id,
            access_encrypted=access.ciphertext,
            iv=access.iv,
            auth_tag=access.tag,
            refresh_encrypted=refresh.ciphertext if refresh else None,
            refresh_iv=refresh.iv if refresh else None,
            refresh_auth_tag=refresh.tag if refresh else None,
            created_at=now,
            updated_at=now,
        )
        try:
            await self.repository.upsert_tokens(record)
        except RepositoryError as e:
            logger.error(
                f"Failed to store MAL tokens: {e}", extra={"user_id": user_id}
            )

    # -------------------------------------------------------------------------
    # Sync
    # -------------------------------------------------------------------------

    async def _get_account(self, user_id: str) -> LinkedAccount | None:
        try:
            return await self.repository.get_account(user_id)
        except RepositoryError as e:
            raise ReadError() from e

    async def _access_token(self, user_id: str) -> str:
        key = self.config.tokens_key
        if key is None:
            logger.warning("MAL_TOKENS_SECRET not configured, cannot sync")
            raise MissingAccessTokenError()

        try:
            stored = await self.repository.get_tokens(user_id)
        except RepositoryError as e:
            raise ReadError() from e
        if stored is None:
            raise MissingAccessTokenError()

        try:
            return decrypt_string(
                EncryptedValue(stored.access_encrypted, stored.iv, stored.auth_tag),
                key,
            )
        except EncryptionError as e:
            logger.error(
                f"Stored MAL token could not be decrypted: {e}",
                extra={"user_id": user_id},
            )
            raise MissingAccessTokenError() from e

    async def sync(self, user_id: str) -> int:
        """
        Pull the latest watch history into the local store.

        The cooldown is checked before any upstream call.

        Returns:
            Number of normalized history items received

        Raises:
            CooldownError: Synced less than the cooldown ago
            NotLinkedError: No linked account with a username
            MissingAccessTokenError: No usable stored credential
        """
        if not self.config.can_link():
            raise ServerNotConfiguredError("MAL client id / redirect URI missing")

        now = self._now()
        account = await self._get_account(user_id)

        if account is not None and account.synced_at is not None:
            remaining = account.synced_at + self.config.sync_cooldown - now
            if remaining.total_seconds() > 0:
                raise CooldownError(math.ceil(remaining.total_seconds()))

        if account is None or not account.mal_username:
            raise NotLinkedError()

        access_token = await self._access_token(user_id)
        items = await self.client.fetch_history(account.mal_username, access_token, now)

        rows = [
            HistoryRow(
                user_id=user_id,
                mal_id=item.mal_id,
                episode=item.episode,
                watched_at=item.watched_at,
            )
            for item in items
        ]
        titled = {
            item.mal_id: CatalogItem(
                mal_id=item.mal_id, title=item.title, updated_at=now
            )
            for item in items
            if item.title
        }
        try:
            await self.repository.upsert_history(rows)
            await self.repository.upsert_catalog(titled.values())
            await self.repository.mark_synced(user_id, now)
        except RepositoryError as e:
            logger.error(
                f"Failed to store MAL history: {e}", extra={"user_id": user_id}
            )
            raise AccountStoreError() from e

        logger.info(
            f"Synced {len(items)} MAL history items",
            extra={"user_id": user_id, "count": len(items)},
        )
        return len(items)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def profile(self, user_id: str) -> tuple[LinkedAccount | None, bool]:
        """
        Linked account and whether a stored credential exists.

        An account without a token record is linked but cannot sync until
        the user links again.
        """
        try:
            account = await self.repository.get_account(user_id)
            if account is None:
                return None, False
            tokens = await self.repository.get_tokens(user_id)
        except RepositoryError as e:
            raise ReadError() from e
        return account, tokens is not None

    async def recent(self, user_id: str, limit: int = RECENT_LIMIT) -> list[RecentItem]:
        """Latest history rows joined to the catalog."""
        try:
            rows = await self.repository.list_recent_history(user_id, limit)
            catalog = await self.repository.get_catalog(r.mal_id for r in rows)
        except RepositoryError as e:
            raise ReadError() from e

        items = []
        for row in rows:
            cached = catalog.get(row.mal_id) or CatalogItem(mal_id=row.mal_id)
            items.append(
                RecentItem(
                    mal_id=row.mal_id,
                    episode=row.episode,
                    watched_at=row.watched_at,
                    title=cached.display_title(),
                    main_picture=cached.main_picture,
                )
            )
        return items

    async def seasonal(self) -> list[CatalogItem]:
        """
        Current season's lineup, cached into the catalog.

        An upstream failure leaves cached rows untouched.
        """
        now = self._now()
        year, season = season_for(now)
        items = await self.client.fetch_seasonal(year, season, now)

        try:
            await self.repository.upsert_catalog(items)
        except RepositoryError as e:
            logger.error(f"Failed to cache seasonal anime: {e}")
        return items
