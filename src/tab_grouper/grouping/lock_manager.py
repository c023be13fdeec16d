"""
Per-key mutual exclusion for asyncio tasks.
"""

import asyncio
from typing import Awaitable, Callable, TypeVar

from tab_grouper.config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class LockManager:
    """
    Serializes async tasks that share a key.

    Tasks with the same key run one at a time in arrival order (asyncio.Lock
    wakes waiters FIFO); tasks with different keys never wait on each other.
    Locks are created on first use and discarded once nobody holds or awaits
    them. Locks are not re-entrant: a task must not call run_exclusive with
    its own key on the same manager.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    async def run_exclusive(self, key: str, task: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``task`` while holding the lock for ``key``.

        Args:
            key: Lock key (a category name for the grouping engine)
            task: Zero-argument coroutine function to run

        Returns:
            Whatever the task returns; exceptions propagate after the lock is released
        """
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1

        if lock.locked():
            logger.debug(f"Waiting for lock '{key}'")

        try:
            async with lock:
                return await task()
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def is_locked(self, key: str) -> bool:
        """Check whether a task currently holds the lock for ``key``."""
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def active_keys(self) -> list[str]:
        """Keys with a holder or waiter."""
        return list(self._locks)
