"""Reconciliation decision engine: demand → catalog match → provision."""

from .demand import extract_demand
from .matcher import PoolCatalogMatcher
from .provisioner import PoolProvisioner, ProvisionOutcome, build_pool, pool_name
from .reconciler import Outcome, ReconcileResult, Reconciler

__all__ = [
    "Outcome",
    "PoolCatalogMatcher",
    "PoolProvisioner",
    "ProvisionOutcome",
    "ReconcileResult",
    "Reconciler",
    "build_pool",
    "extract_demand",
    "pool_name",
]
