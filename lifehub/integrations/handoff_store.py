"""
Short-lived in-memory correlation store.

Binds an OAuth ``state`` issued at authorization time to the data the
callback needs (user id, PKCE verifier, ...). Records expire after a TTL and
are consumed at most once.

Expiry is checked on every read. A periodic sweep (see run_sweeper) bounds
memory held by records that are never consumed; correctness does not depend
on it.

This store is process-local. Multi-instance deployments need sticky routing
for the start/callback pair or an external store with an atomic
get-and-delete (e.g. Redis GETDEL).
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 5 * 60


@dataclass
class HandoffRecord(Generic[T]):
    payload: T
    expires_at: float


class HandoffStore(Generic[T]):
    """
    Key -> payload map with per-entry expiry and read-and-delete semantics.

    All operations take a lock, so two concurrent take() calls for the same
    id cannot both return the payload even when handlers run on threadpool
    workers.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._records: dict[str, HandoffRecord[T]] = {}
        self._lock = threading.Lock()

    def put(self, id: str, payload: T, ttl: float = DEFAULT_TTL_SECONDS) -> None:
        """Store a payload, replacing any existing record with the same id."""
        with self._lock:
            self._records[id] = HandoffRecord(payload, self._clock() + ttl)

    def take(self, id: str) -> T | None:
        """
        Consume a record.

        Returns:
            The payload, or None if the id is unknown, expired or already taken
        """
        with self._lock:
            record = self._records.pop(id, None)
            if record is None:
                return None
            if record.expires_at <= self._clock():
                return None
            return record.payload

    def peek(self, id: str) -> T | None:
        """Return the payload without consuming it."""
        with self._lock:
            record = self._records.get(id)
            if record is None or record.expires_at <= self._clock():
                return None
            return record.payload

    def sweep(self) -> int:
        """
        Delete every expired record.

        Returns:
            Number of records removed
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, r in self._records.items() if r.expires_at <= now]
            for key in expired:
                del self._records[key]
        return len(expired)

    async def run_sweeper(self, interval: float) -> None:
        """Sweep on a fixed interval until cancelled."""
        while True:
            await asyncio.sleep(interval)
            removed = self.sweep()
            if removed:
                logger.debug(f"Swept {removed} expired handoff records")

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
