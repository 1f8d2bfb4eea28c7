from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Literal

POOL_API_VERSION = "karpenter.sh/v1"
POOL_KIND = "NodePool"

type WorkloadPhase = Literal["Pending", "Running", "Succeeded", "Failed", "Unknown"]
type TaintEffect = Literal["NoSchedule", "PreferNoSchedule", "NoExecute"]
type ConsolidationPolicy = Literal["WhenEmpty", "WhenEmptyOrUnderutilized"]
type RequirementOperator = Literal["In", "NotIn", "Exists", "DoesNotExist", "Gt", "Lt"]

DEFAULT_NAMESPACE = "default"


@dataclass(frozen=True, slots=True, order=True)
class WorkloadRef:
    """Identity of one workload - the unit a reconciliation pass is keyed on."""

    namespace: str
    name: str

    @classmethod
    def parse(cls, text: str) -> WorkloadRef:
        namespace, sep, name = text.strip().partition("/")
        if not sep:
            namespace, name = DEFAULT_NAMESPACE, namespace
        if not namespace or not name:
            raise ValueError(f"Invalid workload reference '{text}', expected NAMESPACE/NAME")
        return cls(namespace=namespace, name=name)

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True, slots=True)
class Workload:
    namespace: str
    name: str
    phase: WorkloadPhase
    node_selector: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def ref(self) -> WorkloadRef:
        return WorkloadRef(namespace=self.namespace, name=self.name)

    @property
    def is_pending(self) -> bool:
        return self.phase == "Pending"


@dataclass(frozen=True, slots=True)
class Taint:
    """Pool constraint: only workloads tolerating key=value may land on the pool."""

    key: str
    value: str
    effect: TaintEffect | str = "NoSchedule"


@dataclass(frozen=True, slots=True)
class NodeClassRef:
    group: str
    kind: str
    name: str


@dataclass(frozen=True, slots=True)
class Requirement:
    key: str
    operator: RequirementOperator
    values: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Budget:
    nodes: str


@dataclass(frozen=True, slots=True)
class Disruption:
    consolidation_policy: ConsolidationPolicy
    consolidate_after: str
    budgets: tuple[Budget, ...] = ()


@dataclass(frozen=True, slots=True)
class Limits:
    cpu: str
    memory: str


@dataclass(frozen=True, slots=True)
class Pool:
    """Elastic compute pool definition (a Karpenter NodePool).

    Pools read back from the store may carry ``defects``: constraint entries
    that were present but could not be understood. Decoding keeps the rest of
    the pool so a single bad entry never hides the well-formed ones.
    """

    name: str
    taints: tuple[Taint, ...] = ()
    limits: Limits | None = None
    node_class_ref: NodeClassRef | None = None
    requirements: tuple[Requirement, ...] = ()
    expire_after: str | None = None
    disruption: Disruption | None = None
    defects: tuple[str, ...] = field(default=(), compare=False)
