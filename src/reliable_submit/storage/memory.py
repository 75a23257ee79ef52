"""In-memory idempotency store with asyncio concurrency control.

This module provides the process-lifetime implementation of the
IdempotencyStore protocol. Records live in a dictionary and are lost when
the process exits.

Concurrency:
    - Each request identity has its own asyncio.Lock
    - A global lock protects the _locks dictionary
    - Writes for one identity are serialized; different identities proceed
      independently

Examples:
    Basic usage::

        from reliable_submit.storage.memory import MemoryIdempotencyStore

        store = MemoryIdempotencyStore()
        await store.put("a@b.com-1700000000000-k3j9x0q2z", record)
        stored = await store.get("a@b.com-1700000000000-k3j9x0q2z")

    A late pending write never clobbers a success::

        await store.put(key, success_record)       # True
        await store.put(key, pending_record)       # False, success kept
"""

import asyncio

from reliable_submit.models import SubmissionRecord
from reliable_submit.observability.logging import get_logger
from reliable_submit.storage.base import IdempotencyStore

logger = get_logger(__name__)


class MemoryIdempotencyStore(IdempotencyStore):
    """In-memory idempotency store with per-key asyncio locks.

    Attributes:
        _store: Dictionary mapping request identities to records.
        _locks: Dictionary mapping request identities to asyncio.Lock objects.
        _global_lock: Lock protecting the _locks dictionary.
    """

    def __init__(self) -> None:
        self._store: dict[str, SubmissionRecord] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._global_lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return key in self._store

    async def get(self, key: str) -> SubmissionRecord | None:
        """Retrieve the record for a request identity.

        Returns a copy so callers cannot mutate the stored record in place.
        """
        record = self._store.get(key)
        if record is None:
            return None
        return record.model_copy(deep=True)

    async def put(self, key: str, record: SubmissionRecord) -> bool:
        """Insert or replace the record for a request identity.

        The existing record is re-read under the key lock, so a SUCCESS
        written by a concurrent completion is never overwritten.

        Returns:
            True if written, False if the key already maps to SUCCESS.
        """
        lock = await self._lock_for(key)

        async with lock:
            existing = self._store.get(key)
            if existing is not None and existing.is_success:
                logger.debug(
                    "store.write_refused",
                    key=key,
                    attempted_status=record.status.value,
                )
                return False

            self._store[key] = record.model_copy(deep=True)
            return True

    async def clear(self) -> None:
        """Drop every record and lock."""
        async with self._global_lock:
            self._store.clear()
            self._locks.clear()

    async def _lock_for(self, key: str) -> asyncio.Lock:
        # Ensure lock exists for this key (protected by global lock)
        async with self._global_lock:
            if key not in self._locks:
                self._locks[key] = asyncio.Lock()
            return self._locks[key]
