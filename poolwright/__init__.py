"""Poolwright - demand-driven Karpenter NodePool provisioning.

A pending pod that sets the ``provision-for-team`` node selector gets a
matching NodePool, created on first demand:

    from poolwright import ClusterConfig, Reconciler, WorkloadRef
    from poolwright.kube import KubeStore

    async with KubeStore.from_config(ClusterConfig()) as store:
        result = await Reconciler(store).reconcile(WorkloadRef.parse("batch/trainer-0"))
"""

from importlib.metadata import PackageNotFoundError, version

from poolwright.api.model import Pool, Taint, Workload, WorkloadRef
from poolwright.config import ClusterConfig, EngineConfig, PoolTemplate, Settings, load_settings
from poolwright.core.exceptions import (
    AlreadyExistsError,
    CatalogUnavailableError,
    ConfigurationError,
    CreateRejectedError,
    NotFoundError,
    PoolwrightError,
    StoreError,
)
from poolwright.engine import Outcome, ReconcileResult, Reconciler

try:
    __version__ = version("poolwright")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "AlreadyExistsError",
    "CatalogUnavailableError",
    "ClusterConfig",
    "ConfigurationError",
    "CreateRejectedError",
    "EngineConfig",
    "NotFoundError",
    "Outcome",
    "Pool",
    "PoolTemplate",
    "PoolwrightError",
    "ReconcileResult",
    "Reconciler",
    "Settings",
    "StoreError",
    "Taint",
    "Workload",
    "WorkloadRef",
    "__version__",
    "load_settings",
]
