"""Controller loop: resync pending workloads, drain them through the reconciler.

Triggers are level-based. Every ``resync_interval`` the pending workloads are
listed and enqueued; the queue folds duplicates, so a workload that is
already waiting or being processed is not reconciled twice in parallel.
Results decide the next round: a requested re-check is scheduled, an error
backs off exponentially.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_delay,
    wait_exponential,
)

from poolwright.api.model import WorkloadRef
from poolwright.api.store import ResourceStore
from poolwright.config import ControllerConfig
from poolwright.core.exceptions import PoolwrightError, StoreError
from poolwright.dispatch import WorkQueue
from poolwright.engine.reconciler import Reconciler, ReconcileResult

log = logger.bind(component="controller")


class ApiServerNotReadyError(Exception):
    """API server not ready - retry."""


async def wait_until_ready(is_ready: Callable[[], Awaitable[bool]], timeout: float = 60.0) -> None:
    """Poll ``is_ready`` with exponential backoff until it reports ready."""

    @retry(
        stop=stop_after_delay(timeout),
        wait=wait_exponential(multiplier=0.5, max=5),
        retry=retry_if_exception_type(ApiServerNotReadyError),
        reraise=True,
    )
    async def _check() -> None:
        if not await is_ready():
            raise ApiServerNotReadyError()

    try:
        await _check()
    except ApiServerNotReadyError as e:
        raise StoreError(f"API server not ready after {timeout:.0f}s", reason="Unavailable") from e


class Controller:
    def __init__(
        self,
        store: ResourceStore,
        reconciler: Reconciler,
        config: ControllerConfig | None = None,
    ) -> None:
        self._store = store
        self._reconciler = reconciler
        self._config = config or ControllerConfig()
        self._queue: WorkQueue[WorkloadRef] = WorkQueue(
            backoff_base=self._config.backoff_base,
            backoff_max=self._config.backoff_max,
        )

    @property
    def queue(self) -> WorkQueue[WorkloadRef]:
        return self._queue

    async def resync(self) -> int:
        try:
            workloads = await self._store.list_pending_workloads(self._config.namespace)
        except StoreError as e:
            log.warning("Resync failed, keeping current queue: {err}", err=e)
            return 0
        for workload in workloads:
            self._queue.add(workload.ref)
        log.debug("Resync enqueued {n} pending workloads", n=len(workloads))
        return len(workloads)

    async def process(self, ref: WorkloadRef) -> ReconcileResult | None:
        try:
            result = await self._reconciler.reconcile(ref)
        except PoolwrightError as e:
            delay = self._queue.add_rate_limited(ref)
            log.bind(workload=str(ref)).error(
                "Reconcile failed, retrying in {delay:.3f}s: {err}", delay=delay, err=e,
            )
            return None
        except Exception as e:
            delay = self._queue.add_rate_limited(ref)
            log.bind(workload=str(ref)).opt(exception=e).error(
                "Unexpected error during reconcile, retrying in {delay:.3f}s: {err}", delay=delay, err=e,
            )
            return None

        self._queue.forget(ref)
        if result.requeue_after is not None:
            self._queue.add_after(ref, result.requeue_after)
        return result

    async def _worker(self, index: int) -> None:
        while (ref := await self._queue.get()) is not None:
            try:
                await self.process(ref)
            finally:
                self._queue.done(ref)
        log.debug("Worker {i} stopped", i=index)

    async def _resync_loop(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            await self.resync()
            try:
                await asyncio.wait_for(stop.wait(), timeout=self._config.resync_interval)
            except TimeoutError:
                continue

    async def run(self, stop: asyncio.Event) -> None:
        log.info(
            "Starting controller: workers={w}, resync={r}s, namespace={ns}",
            w=self._config.workers,
            r=self._config.resync_interval,
            ns=self._config.namespace or "<all>",
        )
        async with asyncio.TaskGroup() as tg:
            tg.create_task(self._resync_loop(stop))
            for i in range(self._config.workers):
                tg.create_task(self._worker(i))
            await stop.wait()
            await self._queue.shutdown()
        log.info("Controller stopped")
