"""Per-session exclusive locks with a bounded wait."""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger

from personalization.core.errors import ConcurrencyConflict


class SessionLocks:
    """
    One ``asyncio.Lock`` per session id.

    Locks are held in a weak-value map, so a session's lock disappears
    once no coroutine holds or waits on it.

    Example:
        >>> locks = SessionLocks(timeout_seconds=2.0, retries=3)
        >>> async with locks.hold("session-1"):
        ...     ...
    """

    def __init__(self, timeout_seconds: float = 2.0, retries: int = 3):
        self.timeout_seconds = timeout_seconds
        self.retries = max(1, retries)
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def locked(self, session_id: str) -> bool:
        lock = self._locks.get(session_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        """
        Hold the session lock for the duration of the block.

        Raises:
            ConcurrencyConflict: not acquired after ``retries`` attempts
        """
        lock = self._lock_for(session_id)
        for attempt in range(1, self.retries + 1):
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout_seconds)
                break
            except asyncio.TimeoutError:
                logger.debug(f"Session {session_id} busy (attempt {attempt}/{self.retries})")
        else:
            logger.warning(f"Gave up waiting for session {session_id} after {self.retries} attempts")
            raise ConcurrencyConflict(session_id, self.retries)

        try:
            yield
        finally:
            lock.release()
