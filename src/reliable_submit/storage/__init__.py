"""Idempotency stores for the outcome simulator.

All stores implement the IdempotencyStore protocol defined in base.py.

Available Stores:
    - MemoryIdempotencyStore: In-memory store with asyncio concurrency
"""

from reliable_submit.storage.base import IdempotencyStore
from reliable_submit.storage.memory import MemoryIdempotencyStore

__all__ = [
    "IdempotencyStore",
    "MemoryIdempotencyStore",
]
