"""
Per-user serialization of mutating ledger operations.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from core.logging import get_trading_logger_safe


class UserLockRegistry:
    """Hands out one ``asyncio.Lock`` per user id.

    The registry holds at most ``max_locks`` entries in steady state. When the
    bound is reached, locks with no holders or waiters are dropped; a user
    whose lock is dropped simply gets a fresh one next time.
    """

    def __init__(self, max_locks: int = 1000):
        self.max_locks = max_locks
        self.logger = get_trading_logger_safe("user_locks")
        self._locks: Dict[int, asyncio.Lock] = {}
        # Holders plus waiters per user
        self._refcounts: Dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, user_id: int) -> AsyncIterator[None]:
        lock = self._checkout(user_id)
        try:
            async with lock:
                yield
        finally:
            self._checkin(user_id)

    def _checkout(self, user_id: int) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            if len(self._locks) >= self.max_locks:
                self._prune()
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        self._refcounts[user_id] = self._refcounts.get(user_id, 0) + 1
        return lock

    def _checkin(self, user_id: int) -> None:
        remaining = self._refcounts[user_id] - 1
        if remaining:
            self._refcounts[user_id] = remaining
        else:
            del self._refcounts[user_id]

    def _prune(self) -> None:
        idle = [uid for uid in self._locks if uid not in self._refcounts]
        for uid in idle:
            del self._locks[uid]
        if idle:
            self.logger.debug("Pruned idle user locks", pruned=len(idle), remaining=len(self._locks))
        else:
            self.logger.warning("User lock registry over capacity, no idle locks to prune",
                                active=len(self._locks), max_locks=self.max_locks)
