"""One reconciliation pass for one workload.

Nothing is remembered between passes: each call reads the workload and the
pool catalog as they are now and decides from that snapshot alone, so a
missed trigger is repaired by the next one and a duplicate trigger repeats
harmless work.

    not pending / gone ─────────────────────────────► done
    pending ─► no demand key ───────────────────────► done
            └► demand ─► pool matches ──────────────► re-check (matched_requeue)
                     └► no match ─► create / exists ► re-check (provisioned_requeue)

Catalog and creation failures propagate; the caller owns error backoff.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from loguru import logger

from poolwright.api.model import WorkloadRef
from poolwright.api.store import ResourceStore
from poolwright.config import EngineConfig, PoolTemplate
from poolwright.core.exceptions import NotFoundError

from .demand import extract_demand
from .matcher import PoolCatalogMatcher
from .provisioner import PoolProvisioner


class Outcome(StrEnum):
    NOT_FOUND = "not_found"
    NOT_PENDING = "not_pending"
    NO_DEMAND = "no_demand"
    MATCHED = "matched"
    PROVISIONED = "provisioned"
    ALREADY_SATISFIED = "already_satisfied"


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    outcome: Outcome
    requeue_after: float | None = None
    demand: str | None = None
    pool: str | None = None

    @property
    def requeue(self) -> bool:
        return self.requeue_after is not None


class Reconciler:
    def __init__(
        self,
        store: ResourceStore,
        engine: EngineConfig | None = None,
        template: PoolTemplate | None = None,
    ) -> None:
        self._store = store
        self._engine = engine or EngineConfig()
        self._matcher = PoolCatalogMatcher(store, self._engine.demand_key, self._engine.match_on)
        self._provisioner = PoolProvisioner(store, template or PoolTemplate(), self._engine)

    async def reconcile(self, ref: WorkloadRef) -> ReconcileResult:
        log = logger.bind(component="reconciler", workload=str(ref))

        try:
            workload = await self._store.get_workload(ref)
        except NotFoundError:
            log.info("Workload not found. Ignoring since it must have been deleted")
            return ReconcileResult(Outcome.NOT_FOUND)

        if not workload.is_pending:
            log.debug("Workload is {phase}, nothing to do", phase=workload.phase)
            return ReconcileResult(Outcome.NOT_PENDING)

        log.info("Workload is pending")
        for key, value in workload.node_selector.items():
            log.debug("Node selector {key}={value}", key=key, value=value)

        demand = extract_demand(workload.node_selector, self._engine.demand_key)
        if demand is None:
            return ReconcileResult(Outcome.NO_DEMAND)

        log = log.bind(demand=demand)
        pool = await self._matcher.find(demand)
        if pool is not None:
            result = ReconcileResult(
                Outcome.MATCHED,
                requeue_after=self._engine.matched_requeue,
                demand=demand,
                pool=pool.name,
            )
        else:
            provisioned = await self._provisioner.provision(demand)
            result = ReconcileResult(
                Outcome.PROVISIONED if provisioned == "created" else Outcome.ALREADY_SATISFIED,
                requeue_after=self._engine.provisioned_requeue,
                demand=demand,
                pool=self._provisioner.build(demand).name,
            )

        log.info(
            "Pass finished: {outcome}, re-check in {delay}s",
            outcome=result.outcome, delay=result.requeue_after, pool=result.pool,
        )
        return result
