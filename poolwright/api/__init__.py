"""Typed resource model and the store contract the engine is written against."""

from .model import (
    POOL_API_VERSION,
    POOL_KIND,
    Budget,
    Disruption,
    Limits,
    NodeClassRef,
    Pool,
    Requirement,
    Taint,
    Workload,
    WorkloadRef,
)
from .store import ResourceStore

__all__ = [
    "POOL_API_VERSION",
    "POOL_KIND",
    "Budget",
    "Disruption",
    "Limits",
    "NodeClassRef",
    "Pool",
    "Requirement",
    "ResourceStore",
    "Taint",
    "Workload",
    "WorkloadRef",
]
