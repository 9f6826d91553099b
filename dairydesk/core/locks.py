"""
Per-session locking to prevent race conditions.

Keys: lock:session:{name}. One asyncio.Lock per key, created on first use,
so login/logout/refresh on the same session never interleave on the store.
SingleFlight collapses concurrent calls for one key into a single in-flight
task whose result every caller receives.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional, TypeVar

T = TypeVar("T")

LOCK_TIMEOUT_SECONDS = 30


class KeyedLocks:
    """Named asyncio locks, one per key."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def acquire(self, key: str, timeout_seconds: Optional[float] = LOCK_TIMEOUT_SECONDS) -> AsyncIterator[None]:
        """Hold ``key`` for the duration of the block; raises TimeoutError if it stays busy."""
        lock = self.get(key)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=timeout_seconds)
        except asyncio.TimeoutError:
            raise TimeoutError(f"Could not acquire lock {key} within {timeout_seconds}s")
        try:
            yield
        finally:
            lock.release()


class SingleFlight:
    """Share one in-flight coroutine per key among concurrent callers."""

    def __init__(self):
        self._inflight: Dict[str, asyncio.Task] = {}

    def is_running(self, key: str) -> bool:
        return key in self._inflight

    async def do(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._inflight[key] = task
            task.add_done_callback(lambda _t, k=key: self._inflight.pop(k, None))
        # shield: one caller going away must not cancel the others
        return await asyncio.shield(task)


def lock_key_session(name: str) -> str:
    return f"lock:session:{name}"
