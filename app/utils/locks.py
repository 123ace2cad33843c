import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class KeyedLock:
    """
    One asyncio.Lock per key, dropped again once nobody holds or waits on it.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_held(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[bool]:
        """
        Acquire the lock for `key`. Yields True when another holder had it
        first, i.e. the caller waited and state may have changed meanwhile.
        """
        lock = self._locks.setdefault(key, asyncio.Lock())
        # Count users, not lock.locked(): a woken waiter may not have acquired yet
        contended = self._users.get(key, 0) > 0
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield contended
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]
