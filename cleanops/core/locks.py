"""Per-file mutual exclusion for ledger read-modify-write cycles.

Each monthly workbook is loaded, mutated and saved as a unit.  Two upserts
against the same file must not interleave, otherwise the later save drops the
earlier row.  :class:`FileLockRegistry` hands out one :class:`asyncio.Lock`
per canonical path; waiters on the same path are admitted in FIFO order and
different paths never block each other.
"""
from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, TypeVar

T = TypeVar("T")


class FileLockRegistry:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    @staticmethod
    def key_for(path: Path | str) -> str:
        return os.path.normcase(os.path.abspath(os.fspath(path)))

    def lock_for(self, path: Path | str) -> asyncio.Lock:
        key = self.key_for(path)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def is_locked(self, path: Path | str) -> bool:
        lock = self._locks.get(self.key_for(path))
        return bool(lock and lock.locked())

    async def acquire(self, path: Path | str, timeout: float | None = None) -> asyncio.Lock:
        """Acquire and return the lock for ``path``; the caller must release it.

        Raises :class:`asyncio.TimeoutError` if the lock is not acquired in time.
        """

        lock = self.lock_for(path)
        if timeout is None:
            await lock.acquire()
        else:
            await asyncio.wait_for(lock.acquire(), timeout)
        return lock

    @asynccontextmanager
    async def hold(self, path: Path | str, timeout: float | None = None) -> AsyncIterator[None]:
        lock = await self.acquire(path, timeout)
        try:
            yield
        finally:
            lock.release()

    async def with_file_lock(
        self,
        path: Path | str,
        fn: Callable[[], Awaitable[T]],
        *,
        timeout: float | None = None,
    ) -> T:
        async with self.hold(path, timeout=timeout):
            return await fn()

    def reset(self) -> None:
        self._locks.clear()
