"""Idempotency store protocol.

This module defines the interface the outcome simulator uses to remember
what it has seen for each request identity. The store is the single source
of truth for "have I seen this before".

Examples:
    Implementing a custom store::

        from reliable_submit.models import SubmissionRecord

        class MyStore:
            async def get(self, key: str) -> SubmissionRecord | None:
                data = await self.backend.get(key)
                if data is None:
                    return None
                return SubmissionRecord.model_validate_json(data)

            async def put(self, key: str, record: SubmissionRecord) -> bool:
                # Upsert, unless the stored record is already SUCCESS
                ...

Consistency Requirements:
    All IdempotencyStore implementations MUST guarantee:

    1. **Serialized writes per key**: concurrent put() calls for the same key
       never interleave into a corrupt record; the last writer wins.

    2. **Success is final**: once a key maps to a SUCCESS record, every later
       put() for that key is refused and the stored record is left untouched.

    3. **Independent keys**: writes for different keys do not block each other.
"""

from typing import Protocol, runtime_checkable

from reliable_submit.models import SubmissionRecord


@runtime_checkable
class IdempotencyStore(Protocol):
    """Protocol for request-identity to submission-record stores.

    No eviction policy is part of the contract; capacity is unbounded.
    """

    async def get(self, key: str) -> SubmissionRecord | None:
        """Retrieve the record for a request identity.

        Args:
            key: The request identity.

        Returns:
            The stored record if found, None otherwise.
        """
        ...

    async def put(self, key: str, record: SubmissionRecord) -> bool:
        """Insert or replace the record for a request identity.

        Args:
            key: The request identity.
            record: The record to store.

        Returns:
            True if the record was written, False if the key already maps to
            a SUCCESS record (which is never overwritten).
        """
        ...
