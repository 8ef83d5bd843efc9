"""In-process registry of per-client write locks.

Conversation saves are read-modify-write sequences with no transaction
underneath.  Every mutation of a client's logs that goes through the same
``ClientLockRegistry`` is serialised on that client's lock, so two appends
issued back to back both land.  Ephemeral: empty on process restart.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from loguru import logger


class ClientLockRegistry:
    """Map of client directory -> ``asyncio.Lock``.

    Keys are resolved paths so ``root/a`` and ``root/./a`` share one lock.
    Locks are created lazily inside the running event loop.
    """

    def __init__(self) -> None:
        self._locks: dict[Path, asyncio.Lock] = {}
        self._waiting: dict[Path, int] = {}

    def _key(self, directory: Path) -> Path:
        return directory.resolve()

    def lock_for(self, directory: Path) -> asyncio.Lock:
        key = self._key(directory)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, directory: Path) -> AsyncIterator[None]:
        """Hold the client's lock for the duration of the block."""
        key = self._key(directory)
        lock = self.lock_for(directory)
        if lock.locked():
            logger.debug("Registry: waiting for write lock on {}", key.name)
        self._waiting[key] = self._waiting.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiting[key] -= 1
            if not self._waiting[key]:
                del self._waiting[key]

    # -- Query -----------------------------------------------------------------

    def is_locked(self, directory: Path) -> bool:
        lock = self._locks.get(self._key(directory))
        return lock is not None and lock.locked()

    @property
    def pending_count(self) -> int:
        """Number of holders plus waiters across all clients."""
        return sum(self._waiting.values())
