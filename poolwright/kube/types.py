"""Kubernetes wire types.

TypedDicts for the subset of Pod and Karpenter NodePool manifests this
controller reads and writes. They describe what the API server returns;
nothing guarantees a listed object actually conforms, which is why the
codec checks shapes before trusting them.
"""

from __future__ import annotations

from typing import NotRequired, TypedDict


class ObjectMeta(TypedDict):
    name: str
    namespace: NotRequired[str]
    uid: NotRequired[str]
    resourceVersion: NotRequired[str]
    labels: NotRequired[dict[str, str]]


# =============================================================================
# Pod
# =============================================================================


class PodSpec(TypedDict):
    nodeSelector: NotRequired[dict[str, str]]


class PodStatus(TypedDict):
    phase: NotRequired[str]


class PodManifest(TypedDict):
    metadata: ObjectMeta
    spec: NotRequired[PodSpec]
    status: NotRequired[PodStatus]


ListMeta = TypedDict("ListMeta", {"continue": NotRequired[str], "resourceVersion": NotRequired[str]})


class PodList(TypedDict):
    items: list[PodManifest]
    metadata: NotRequired[ListMeta]


# =============================================================================
# NodePool
# =============================================================================


class TaintManifest(TypedDict):
    key: str
    value: NotRequired[str]
    effect: str


class NodeClassRefManifest(TypedDict):
    group: str
    kind: str
    name: str


class RequirementManifest(TypedDict):
    key: str
    operator: str
    values: NotRequired[list[str]]


class NodeClaimTemplateSpec(TypedDict):
    taints: NotRequired[list[TaintManifest]]
    nodeClassRef: NotRequired[NodeClassRefManifest]
    requirements: NotRequired[list[RequirementManifest]]
    expireAfter: NotRequired[str]


class NodeClaimTemplate(TypedDict):
    spec: NodeClaimTemplateSpec


class BudgetManifest(TypedDict):
    nodes: str


class DisruptionManifest(TypedDict):
    budgets: NotRequired[list[BudgetManifest]]
    consolidateAfter: NotRequired[str]
    consolidationPolicy: NotRequired[str]


class NodePoolSpec(TypedDict):
    limits: NotRequired[dict[str, str]]
    template: NodeClaimTemplate
    disruption: NotRequired[DisruptionManifest]


class NodePoolManifest(TypedDict):
    apiVersion: str
    kind: str
    metadata: ObjectMeta
    spec: NodePoolSpec


class NodePoolList(TypedDict):
    items: list[NodePoolManifest]
    metadata: NotRequired[ListMeta]


class Status(TypedDict):
    """Error body returned by the API server."""

    kind: str
    status: str
    message: NotRequired[str]
    reason: NotRequired[str]
    code: NotRequired[int]
