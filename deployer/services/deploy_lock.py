"""Per-repository mutual exclusion for deployments.

Redeliveries and concurrent releases for the same repository would otherwise
interleave staging-directory clears and site-directory promotion. A
``DeployLocks`` table hands out one ``asyncio.Lock`` per ``(owner, repo)``
and forgets it once nobody holds or waits for it.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class DeployLocks:
    """Keyed lock table serialising deployments per repository."""

    def __init__(self) -> None:
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._users: dict[tuple[str, str], int] = {}

    @asynccontextmanager
    async def hold(self, owner: str, repo: str) -> AsyncIterator[None]:
        """Hold the lock for *owner*/*repo* for the duration of the block."""
        key = (owner, repo)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def is_locked(self, owner: str, repo: str) -> bool:
        """Return True while a deployment for *owner*/*repo* holds the lock."""
        lock = self._locks.get((owner, repo))
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
