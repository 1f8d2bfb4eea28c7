"""Pool catalog matching.

Decides whether some existing pool already serves a demand identifier. The
catalog is listed fresh on every call and may lag behind concurrent writers;
that is harmless because creation is idempotent on the derived pool name.
"""

from __future__ import annotations

from loguru import logger

from poolwright.api.model import Pool, Taint
from poolwright.api.store import ResourceStore
from poolwright.config import MatchOn
from poolwright.core.exceptions import CatalogUnavailableError, StoreError


class PoolCatalogMatcher:
    """Searches the pool catalog for a constraint carrying the identifier.

    With ``match_on="value"`` any constraint whose value equals the
    identifier matches, whatever its key. ``match_on="key_value"`` also
    requires the constraint key to be the demand key, so that unrelated
    constraints that happen to share a value are not mistaken for a match.
    """

    def __init__(self, store: ResourceStore, demand_key: str, match_on: MatchOn = "value") -> None:
        self._store = store
        self._demand_key = demand_key
        self._match_on = match_on

    def _satisfies(self, taint: Taint, identifier: str) -> bool:
        if taint.value != identifier:
            return False
        return self._match_on == "value" or taint.key == self._demand_key

    async def find(self, identifier: str) -> Pool | None:
        log = logger.bind(component="matcher", demand=identifier)
        try:
            catalog = await self._store.list_pools()
        except StoreError as e:
            log.error("Failed to list pools: {err}", err=e)
            raise CatalogUnavailableError(f"Failed to list pools: {e}") from e

        for pool in catalog:
            for defect in pool.defects:
                log.warning("Skipping malformed constraint in pool {name}: {defect}", name=pool.name, defect=defect)
            if any(self._satisfies(t, identifier) for t in pool.taints):
                log.info("Matching pool found: {name}", name=pool.name, pool=pool.name)
                return pool

        log.info("No matching pool among {n} listed", n=len(catalog))
        return None

    async def matches(self, identifier: str) -> bool:
        return await self.find(identifier) is not None
