from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from poolwright.api.model import Pool, Workload, WorkloadRef


@runtime_checkable
class ResourceStore(Protocol):
    """Read/list/create access to workloads and pools.

    Implementations raise ``NotFoundError`` from ``get_workload`` when the
    workload is gone, ``AlreadyExistsError`` from ``create_pool`` when the
    name is taken, and ``StoreError`` for everything else.
    """

    async def get_workload(self, ref: WorkloadRef) -> Workload: ...

    async def list_pending_workloads(self, namespace: str | None = None) -> Sequence[Workload]: ...

    async def list_pools(self) -> Sequence[Pool]: ...

    async def create_pool(self, pool: Pool) -> None: ...
