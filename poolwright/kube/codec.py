"""Conversion between the typed model and unstructured Kubernetes manifests.

This is the only module that handles raw dictionaries. Encoding is exact;
decoding is tolerant: a pool whose constraint list contains garbage still
decodes, with each unusable entry described in ``Pool.defects``.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, get_args

from poolwright.api.model import (
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
    WorkloadPhase,
)

from .types import NodeClaimTemplateSpec, NodePoolManifest, NodePoolSpec, TaintManifest


def _dig(obj: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(obj, Mapping):
            return None
        obj = obj.get(key)
    return obj


# =============================================================================
# Pool
# =============================================================================


def encode_taint(taint: Taint) -> TaintManifest:
    return {"key": taint.key, "value": taint.value, "effect": taint.effect}


def encode_pool(pool: Pool) -> NodePoolManifest:
    template_spec: NodeClaimTemplateSpec = {
        "taints": [encode_taint(t) for t in pool.taints],
    }
    if pool.node_class_ref is not None:
        template_spec["nodeClassRef"] = {
            "group": pool.node_class_ref.group,
            "kind": pool.node_class_ref.kind,
            "name": pool.node_class_ref.name,
        }
    if pool.requirements:
        template_spec["requirements"] = [
            {"key": r.key, "operator": r.operator, "values": list(r.values)}
            for r in pool.requirements
        ]
    if pool.expire_after is not None:
        template_spec["expireAfter"] = pool.expire_after

    spec: NodePoolSpec = {"template": {"spec": template_spec}}
    if pool.limits is not None:
        spec["limits"] = {"cpu": pool.limits.cpu, "memory": pool.limits.memory}
    if pool.disruption is not None:
        spec["disruption"] = {
            "budgets": [{"nodes": b.nodes} for b in pool.disruption.budgets],
            "consolidateAfter": pool.disruption.consolidate_after,
            "consolidationPolicy": pool.disruption.consolidation_policy,
        }

    return {
        "apiVersion": POOL_API_VERSION,
        "kind": POOL_KIND,
        "metadata": {"name": pool.name},
        "spec": spec,
    }


def _decode_taints(raw: Any) -> tuple[tuple[Taint, ...], tuple[str, ...]]:
    if raw is None:
        return (), ()
    if not isinstance(raw, list):
        return (), (f"taints is {type(raw).__name__}, expected a list",)

    taints: list[Taint] = []
    defects: list[str] = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, Mapping):
            defects.append(f"taint[{i}] is {type(entry).__name__}, expected a mapping")
            continue
        key, value = entry.get("key"), entry.get("value")
        if not isinstance(key, str):
            defects.append(f"taint[{i}] has no string 'key'")
            continue
        if not isinstance(value, str):
            defects.append(f"taint[{i}] has no string 'value'")
            continue
        effect = entry.get("effect")
        taints.append(Taint(key=key, value=value, effect=effect if isinstance(effect, str) else ""))
    return tuple(taints), tuple(defects)


def _shape(value: Any) -> str:
    return type(value).__name__


def _decode_node_class_ref(raw: Any, defects: list[str]) -> NodeClassRef | None:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        defects.append(f"nodeClassRef is {_shape(raw)}, expected a mapping")
        return None
    group, kind, name = raw.get("group"), raw.get("kind"), raw.get("name")
    if not all(isinstance(v, str) for v in (group, kind, name)):
        defects.append("nodeClassRef needs string 'group', 'kind' and 'name'")
        return None
    return NodeClassRef(group=group, kind=kind, name=name)


def _decode_requirements(raw: Any, defects: list[str]) -> tuple[Requirement, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        defects.append(f"requirements is {_shape(raw)}, expected a list")
        return ()

    requirements: list[Requirement] = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, Mapping):
            defects.append(f"requirement[{i}] is {_shape(entry)}, expected a mapping")
            continue
        key, operator, values = entry.get("key"), entry.get("operator"), entry.get("values", [])
        if not isinstance(key, str) or not isinstance(operator, str):
            defects.append(f"requirement[{i}] has no string 'key' or 'operator'")
            continue
        if not isinstance(values, list):
            defects.append(f"requirement[{i}] values is {_shape(values)}, expected a list")
            continue
        requirements.append(Requirement(key=key, operator=operator, values=tuple(str(v) for v in values)))
    return tuple(requirements)


def _decode_limits(raw: Any, defects: list[str]) -> Limits | None:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        defects.append(f"limits is {_shape(raw)}, expected a mapping")
        return None
    if "cpu" not in raw or "memory" not in raw:
        return None
    return Limits(cpu=str(raw["cpu"]), memory=str(raw["memory"]))


def _decode_disruption(raw: Any, defects: list[str]) -> Disruption | None:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        defects.append(f"disruption is {_shape(raw)}, expected a mapping")
        return None

    budgets: list[Budget] = []
    raw_budgets = raw.get("budgets", [])
    if isinstance(raw_budgets, list):
        for i, b in enumerate(raw_budgets):
            if isinstance(b, Mapping) and "nodes" in b:
                budgets.append(Budget(nodes=str(b["nodes"])))
            else:
                defects.append(f"budget[{i}] has no 'nodes'")
    else:
        defects.append(f"budgets is {_shape(raw_budgets)}, expected a list")

    policy = raw.get("consolidationPolicy", "")
    return Disruption(
        consolidation_policy=policy if isinstance(policy, str) else "",
        consolidate_after=str(raw.get("consolidateAfter", "")),
        budgets=tuple(budgets),
    )


def decode_pool(manifest: Mapping[str, Any]) -> Pool:
    """Decode a listed NodePool, never raising on its content.

    Every part that cannot be understood is left out and described in
    ``Pool.defects``.
    """
    name = _dig(manifest, "metadata", "name")
    template_spec = _dig(manifest, "spec", "template", "spec")
    taints, taint_defects = _decode_taints(_dig(template_spec, "taints"))
    defects = list(taint_defects)
    expire_after = _dig(template_spec, "expireAfter")
    return Pool(
        name=name if isinstance(name, str) else "<unnamed>",
        taints=taints,
        limits=_decode_limits(_dig(manifest, "spec", "limits"), defects),
        node_class_ref=_decode_node_class_ref(_dig(template_spec, "nodeClassRef"), defects),
        requirements=_decode_requirements(_dig(template_spec, "requirements"), defects),
        expire_after=expire_after if isinstance(expire_after, str) else None,
        disruption=_decode_disruption(_dig(manifest, "spec", "disruption"), defects),
        defects=tuple(defects),
    )


# =============================================================================
# Workload
# =============================================================================

_PHASES = frozenset(get_args(WorkloadPhase.__value__))


def decode_workload(manifest: Mapping[str, Any]) -> Workload:
    phase = _dig(manifest, "status", "phase")
    selector = _dig(manifest, "spec", "nodeSelector")
    if isinstance(selector, Mapping):
        selector = {str(k): str(v) for k, v in selector.items()}
    else:
        selector = {}
    return Workload(
        namespace=_dig(manifest, "metadata", "namespace") or "default",
        name=_dig(manifest, "metadata", "name") or "",
        phase=phase if phase in _PHASES else "Unknown",
        node_selector=MappingProxyType(selector),
    )
