"""In-memory resource store.

Same contract as the Kubernetes store: creation is atomic per name and a
second create for a taken name raises ``AlreadyExistsError``. Backs tests
and ``--dry-run`` runs.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from poolwright.api.model import Pool, Workload, WorkloadRef
from poolwright.core.exceptions import AlreadyExistsError, NotFoundError


@dataclass
class InMemoryStore:
    workloads: dict[WorkloadRef, Workload] = field(default_factory=dict)
    pools: dict[str, Pool] = field(default_factory=dict)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @classmethod
    def of(cls, *, workloads: Iterable[Workload] = (), pools: Iterable[Pool] = ()) -> InMemoryStore:
        return cls(
            workloads={w.ref: w for w in workloads},
            pools={p.name: p for p in pools},
        )

    def put_workload(self, workload: Workload) -> None:
        self.workloads[workload.ref] = workload

    async def get_workload(self, ref: WorkloadRef) -> Workload:
        try:
            return self.workloads[ref]
        except KeyError:
            raise NotFoundError("Pod", str(ref)) from None

    async def list_pending_workloads(self, namespace: str | None = None) -> Sequence[Workload]:
        return [
            w for w in self.workloads.values()
            if w.is_pending and (namespace is None or w.namespace == namespace)
        ]

    async def list_pools(self) -> Sequence[Pool]:
        return list(self.pools.values())

    async def create_pool(self, pool: Pool) -> None:
        async with self._lock:
            if pool.name in self.pools:
                raise AlreadyExistsError("NodePool", pool.name)
            self.pools[pool.name] = pool
