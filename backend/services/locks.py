"""
In-process serialization of access mutations.

Each engine action locks the keys it touches before reading state. Keys are
always acquired in sorted order so two actions can never wait on each other.
Database row locks (SELECT ... FOR UPDATE) cover concurrent processes.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable
from uuid import UUID

logger = logging.getLogger(__name__)

HIERARCHY_LOCK_KEY = "hierarchy"


def team_lock_key(team_id: UUID) -> str:
    return f"team:{team_id}"


class TeamLockManager:
    """In-process async lock manager keyed by team (plus one hierarchy key)."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_refs: dict[str, int] = {}
        self._manager_lock = asyncio.Lock()

    async def _checkout(self, key: str) -> asyncio.Lock:
        async with self._manager_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[key] = lock
                self._lock_refs[key] = 0
                logger.debug("[team_locks] Created lock key=%s", key)
            self._lock_refs[key] = self._lock_refs.get(key, 0) + 1
            return lock

    async def _checkin(self, key: str) -> None:
        async with self._manager_lock:
            remaining = max(self._lock_refs.get(key, 1) - 1, 0)
            if remaining == 0:
                self._lock_refs.pop(key, None)
                self._locks.pop(key, None)
                logger.debug("[team_locks] Removed idle lock key=%s", key)
            else:
                self._lock_refs[key] = remaining

    @asynccontextmanager
    async def hold(self, keys: Iterable[str]) -> AsyncIterator[None]:
        """Acquire every key (sorted, deduplicated) for the duration of the block."""
        ordered = sorted(set(keys))
        acquired: list[tuple[str, asyncio.Lock]] = []
        try:
            for key in ordered:
                lock = await self._checkout(key)
                try:
                    await lock.acquire()
                except BaseException:
                    await self._checkin(key)
                    raise
                acquired.append((key, lock))
            logger.debug("[team_locks] Acquired keys=%s", ordered)
            yield
        finally:
            for key, lock in reversed(acquired):
                lock.release()
                await self._checkin(key)
            if acquired:
                logger.debug("[team_locks] Released keys=%s", ordered)


team_locks = TeamLockManager()
