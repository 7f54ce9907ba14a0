"""
Per-Scope Locks

Interactive operations, per-record settlement and per-group compaction
all mutate records belonging to one (user, currency) pair. They take the
same asyncio lock for that pair, so an operation never bases its write
on a principal that another in-process writer is about to change.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class ScopeLocks:
    """Registry of asyncio locks keyed by (user_id, currency)."""

    def __init__(self):
        self._locks: dict[tuple[int, str], asyncio.Lock] = {}

    def get(self, user_id: int, currency: str) -> asyncio.Lock:
        key = (user_id, currency)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, user_id: int, currency: str) -> AsyncIterator[None]:
        async with self.get(user_id, currency):
            yield

    def is_held(self, user_id: int, currency: str) -> bool:
        lock = self._locks.get((user_id, currency))
        return lock is not None and lock.locked()
