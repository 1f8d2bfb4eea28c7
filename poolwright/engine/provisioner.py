"""Idempotent pool creation.

The pool name is a pure function of the demand identifier. Two passes that
race for the same identifier therefore submit the same name, the store
admits exactly one, and the loser sees ``AlreadyExistsError``, which means
the pool it wanted is there. That collision is the only synchronisation
between concurrent passes.
"""

from __future__ import annotations

from typing import Literal

from loguru import logger

from poolwright.api.model import Pool, Taint, TaintEffect
from poolwright.api.store import ResourceStore
from poolwright.config import EngineConfig, PoolTemplate
from poolwright.core.exceptions import AlreadyExistsError, CreateRejectedError, StoreError

type ProvisionOutcome = Literal["created", "already_exists"]


def pool_name(identifier: str, prefix: str = "pool-") -> str:
    return f"{prefix}{identifier}"


def build_pool(
    identifier: str,
    template: PoolTemplate,
    *,
    demand_key: str = "provision-for-team",
    prefix: str = "pool-",
    effect: TaintEffect = "NoSchedule",
) -> Pool:
    return Pool(
        name=pool_name(identifier, prefix),
        taints=(Taint(key=demand_key, value=identifier, effect=effect),),
        limits=template.limits,
        node_class_ref=template.node_class_ref,
        requirements=template.requirements,
        expire_after=template.expire_after,
        disruption=template.disruption,
    )


class PoolProvisioner:
    def __init__(
        self,
        store: ResourceStore,
        template: PoolTemplate,
        engine: EngineConfig | None = None,
    ) -> None:
        self._store = store
        self._template = template
        self._engine = engine or EngineConfig()

    def build(self, identifier: str) -> Pool:
        return build_pool(
            identifier,
            self._template,
            demand_key=self._engine.demand_key,
            prefix=self._engine.pool_name_prefix,
            effect=self._engine.taint_effect,
        )

    async def provision(self, identifier: str) -> ProvisionOutcome:
        """Submit the pool for ``identifier``.

        Raises:
            CreateRejectedError: The store refused the pool for any reason
                other than the name being taken.
        """
        pool = self.build(identifier)
        log = logger.bind(component="provisioner", demand=identifier, pool=pool.name)
        try:
            await self._store.create_pool(pool)
        except AlreadyExistsError:
            log.info("Pool {name} already exists, nothing to do", name=pool.name)
            return "already_exists"
        except StoreError as e:
            log.error("Failed to create pool {name}: {err}", name=pool.name, err=e)
            raise CreateRejectedError(pool.name, e) from e
        log.info("Successfully created pool {name}", name=pool.name)
        return "created"
