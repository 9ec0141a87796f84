"""
Per-package mutual exclusion.

Serializes the guard-then-mutate sequence for one package inside this
process. The compare-and-swap in the repository still guards against
writers in other processes.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict


class PackageLockRegistry:

    def __init__(self):
        self._locks: Dict[int, asyncio.Lock] = {}
        self._waiters: Dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, package_id: int):
        lock = self._locks.setdefault(package_id, asyncio.Lock())
        self._waiters[package_id] = self._waiters.get(package_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[package_id] -= 1
            if self._waiters[package_id] == 0:
                del self._waiters[package_id]
                del self._locks[package_id]

    def __len__(self) -> int:
        return len(self._locks)


# Process-wide registry shared by every request
package_locks = PackageLockRegistry()
