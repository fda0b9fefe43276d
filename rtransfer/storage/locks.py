"""Per-destination exclusivity for concurrent receive sessions"""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict
import logging

logger = logging.getLogger(__name__)


class NameLockRegistry:
    """
    Maps destination name -> lock held by the session writing it

    A session for a name that is already held waits until the holder
    releases it. Entries are dropped once no session holds or waits on them.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def is_held(self, name: str) -> bool:
        lock = self._locks.get(name)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, name: str):
        lock = self._locks.setdefault(name, asyncio.Lock())
        self._users[name] = self._users.get(name, 0) + 1

        if lock.locked():
            logger.info(f"Waiting for another session writing {name}")

        try:
            async with lock:
                yield
        finally:
            self._users[name] -= 1
            if self._users[name] == 0:
                del self._users[name]
                del self._locks[name]
