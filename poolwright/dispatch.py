"""Asyncio work queue with de-duplication, delayed re-adds and failure backoff.

Guarantees, per key:
- a key waiting in the queue is queued once, however often it is added;
- a key is handed to at most one worker at a time; adding it while it is
  being processed schedules exactly one more round after ``done``;
- repeated failures delay the next round exponentially until ``forget``.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Hashable

from loguru import logger


class WorkQueue[K: Hashable]:
    def __init__(self, *, backoff_base: float = 0.005, backoff_max: float = 1000.0) -> None:
        self._queue: deque[K] = deque()
        self._dirty: set[K] = set()
        self._processing: set[K] = set()
        self._failures: dict[K, int] = {}
        self._timers: set[asyncio.TimerHandle] = set()
        self._wakers: set[asyncio.Task[None]] = set()
        self._cond = asyncio.Condition()
        self._backoff_base = backoff_base
        self._backoff_max = backoff_max
        self._shutting_down = False
        self._log = logger.bind(component="queue")

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def _notify(self) -> None:
        async def wake() -> None:
            async with self._cond:
                self._cond.notify_all()

        task = asyncio.get_running_loop().create_task(wake())
        self._wakers.add(task)
        task.add_done_callback(self._wakers.discard)

    def add(self, key: K) -> None:
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        self._notify()

    def add_after(self, key: K, delay: float) -> None:
        if self._shutting_down:
            return
        if delay <= 0:
            self.add(key)
            return

        def fire() -> None:
            self._timers.discard(handle)
            self.add(key)

        handle = asyncio.get_running_loop().call_later(delay, fire)
        self._timers.add(handle)

    def backoff(self, key: K) -> float:
        """Delay for the next failed round of ``key``: base * 2**failures, capped."""
        failures = self._failures.get(key, 0)
        return min(self._backoff_base * (2 ** failures), self._backoff_max)

    def add_rate_limited(self, key: K) -> float:
        delay = self.backoff(key)
        self._failures[key] = self._failures.get(key, 0) + 1
        self.add_after(key, delay)
        return delay

    def forget(self, key: K) -> None:
        self._failures.pop(key, None)

    def failures(self, key: K) -> int:
        return self._failures.get(key, 0)

    async def get(self) -> K | None:
        """Next key to process, or None once the queue is shut down."""
        async with self._cond:
            await self._cond.wait_for(lambda: self._queue or self._shutting_down)
            if self._shutting_down:
                return None
            key = self._queue.popleft()
            self._processing.add(key)
            self._dirty.discard(key)
            return key

    def done(self, key: K) -> None:
        self._processing.discard(key)
        if key in self._dirty and not self._shutting_down:
            self._queue.append(key)
            self._notify()

    async def shutdown(self) -> None:
        self._shutting_down = True
        for handle in self._timers:
            handle.cancel()
        self._timers.clear()
        async with self._cond:
            self._cond.notify_all()
        self._log.debug("Queue shut down with {n} keys pending", n=len(self._queue))
