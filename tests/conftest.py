from __future__ import annotations

from collections.abc import Sequence
from types import MappingProxyType

import pytest

from poolwright.api.model import Pool, Taint, Workload, WorkloadRef
from poolwright.core.exceptions import StoreError
from poolwright.store.memory import InMemoryStore


def make_workload(
    name: str = "trainer-0",
    *,
    namespace: str = "batch",
    phase: str = "Pending",
    selector: dict[str, str] | None = None,
) -> Workload:
    return Workload(
        namespace=namespace,
        name=name,
        phase=phase,  # type: ignore[arg-type]
        node_selector=MappingProxyType(dict(selector or {})),
    )


def make_pool(name: str, *taints: tuple[str, str], defects: tuple[str, ...] = ()) -> Pool:
    return Pool(
        name=name,
        taints=tuple(Taint(key=k, value=v) for k, v in taints),
        defects=defects,
    )


class RecordingStore(InMemoryStore):
    """InMemoryStore that counts calls and can be told to fail."""

    def __init__(self, *, list_error: StoreError | None = None, create_error: StoreError | None = None) -> None:
        super().__init__()
        self.list_calls = 0
        self.created: list[Pool] = []
        self.create_attempts: list[Pool] = []
        self.list_error = list_error
        self.create_error = create_error

    async def list_pools(self) -> Sequence[Pool]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return await super().list_pools()

    async def create_pool(self, pool: Pool) -> None:
        self.create_attempts.append(pool)
        if self.create_error is not None:
            raise self.create_error
        await super().create_pool(pool)
        self.created.append(pool)


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def ref() -> WorkloadRef:
    return WorkloadRef(namespace="batch", name="trainer-0")
