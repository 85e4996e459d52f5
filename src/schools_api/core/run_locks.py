"""Per-run asyncio locks that serialise batches of the same import run."""

import asyncio
import uuid
from collections import OrderedDict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger


class RunLockRegistry:
    """Bounded registry of ``asyncio.Lock`` objects keyed by run id.

    Batches for one run are processed one at a time within this process;
    batches for different runs proceed concurrently. The ledger's row lock
    covers the cross-process case. When more than ``max_runs`` locks are
    held, the least recently used idle locks are dropped.
    """

    def __init__(self, max_runs: int = 1024) -> None:
        if max_runs <= 0:
            msg = f"max_runs must be positive, got {max_runs}"
            raise ValueError(msg)
        self._max_runs = max_runs
        self._locks: OrderedDict[uuid.UUID, asyncio.Lock] = OrderedDict()

    def __len__(self) -> int:
        return len(self._locks)

    def get(self, run_id: uuid.UUID) -> asyncio.Lock:
        """Return the lock for ``run_id``, creating it if needed."""
        lock = self._locks.get(run_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[run_id] = lock
            self._evict()
        else:
            self._locks.move_to_end(run_id)
        return lock

    def _evict(self) -> None:
        for run_id in list(self._locks):
            if len(self._locks) <= self._max_runs:
                return
            if not self._locks[run_id].locked():
                del self._locks[run_id]
        if len(self._locks) > self._max_runs:
            logger.warning(f"Run lock registry holds {len(self._locks)} busy locks (limit {self._max_runs})")

    @asynccontextmanager
    async def lock(self, run_id: uuid.UUID) -> AsyncIterator[None]:
        """Hold the lock for ``run_id`` for the duration of the block."""
        async with self.get(run_id):
            yield
