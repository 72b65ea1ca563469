"""Per-key asyncio locks serializing writes to one decision or application.

Appends and transitions for the same decision must be strictly ordered;
different decisions proceed in parallel. Locks are created on demand and
dropped once no task holds or awaits them.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable
from contextlib import AsyncExitStack, asynccontextmanager


def decision_key(decision_id: str) -> str:
    return f"decision:{decision_id}"


def application_key(application_id: str) -> str:
    return f"application:{application_id}"


class DecisionLockRegistry:
    """Registry of named locks with reference-counted cleanup."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
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

    @asynccontextmanager
    async def hold_many(self, keys: Iterable[str]) -> AsyncIterator[None]:
        """Hold several locks, acquired in sorted order to avoid deadlock."""
        async with AsyncExitStack() as stack:
            for key in sorted(set(keys)):
                await stack.enter_async_context(self.hold(key))
            yield

    @property
    def active_keys(self) -> frozenset[str]:
        return frozenset(self._locks)
