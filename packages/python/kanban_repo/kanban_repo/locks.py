"""Per-group asyncio locks that serialize reindexing inside one process."""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Dict


class GroupLockRegistry:
    """
    Registry of one ``asyncio.Lock`` per sibling group.

    A lock is created when the first caller asks for a group and dropped once
    its last holder or waiter leaves, so the registry only ever contains groups
    with work in flight.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def __contains__(self, key: object) -> bool:
        return key in self._locks

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    @asynccontextmanager
    async def hold_many(self, *keys: str) -> AsyncIterator[None]:
        """Hold several groups at once; sorted acquisition avoids deadlocks."""

        async with AsyncExitStack() as stack:
            for key in sorted(set(keys)):
                await stack.enter_async_context(self.hold(key))
            yield

    def clear(self) -> None:
        self._locks.clear()
        self._users.clear()


group_locks = GroupLockRegistry()
