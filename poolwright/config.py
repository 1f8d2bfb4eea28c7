"""TOML-based provisioner configuration.

Loads ~/.poolwright/defaults.toml (global) and poolwright.toml (project),
merges them, and resolves the sections into typed settings. Every value has
a default, so an empty configuration yields the reference behaviour.

    [engine]
    demand_key = "provision-for-team"
    match_on = "value"

    [pool]
    capacity_types = ["spot"]

    [pool.node_class]
    name = "custom"
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from types import UnionType
from typing import Any, Literal, TypeAliasType, Union, get_args, get_origin, get_type_hints

from poolwright.api.model import (
    Budget,
    ConsolidationPolicy,
    Disruption,
    Limits,
    NodeClassRef,
    Requirement,
    TaintEffect,
)
from poolwright.core.exceptions import ConfigurationError
from poolwright.observability.logging import LogConfig

type RawConfig = dict[str, Any]
type MatchOn = Literal["value", "key_value"]

GLOBAL_CONFIG_PATH = Path.home() / ".poolwright" / "defaults.toml"
PROJECT_CONFIG_NAME = "poolwright.toml"

CAPACITY_TYPE_LABEL = "karpenter.sh/capacity-type"
SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Decision-engine knobs.

    Attributes:
        demand_key: Node-selector key a workload uses to declare its pool.
        pool_name_prefix: Pools are named ``<prefix><identifier>``.
        taint_effect: Effect of the constraint placed on created pools.
        match_on: ``"value"`` matches any constraint whose value equals the
            identifier; ``"key_value"`` also requires the key to be ``demand_key``.
        matched_requeue: Seconds before re-checking a workload whose pool exists.
        provisioned_requeue: Seconds before re-checking after a pool was created.
    """

    demand_key: str = "provision-for-team"
    pool_name_prefix: str = "pool-"
    taint_effect: TaintEffect = "NoSchedule"
    match_on: MatchOn = "value"
    matched_requeue: float = 5.0
    provisioned_requeue: float = 10.0


@dataclass(frozen=True, slots=True)
class PoolTemplate:
    """Everything about a new pool that does not depend on the identifier."""

    limits: Limits = Limits(cpu="12000m", memory="64Gi")
    node_class_ref: NodeClassRef = NodeClassRef(
        group="karpenter.k8s.aws", kind="EC2NodeClass", name="custom",
    )
    capacity_types: tuple[str, ...] = ("spot",)
    expire_after: str = "24h"
    disruption: Disruption = Disruption(
        consolidation_policy="WhenEmpty",
        consolidate_after="10m",
        budgets=(Budget(nodes="10%"),),
    )

    @property
    def requirements(self) -> tuple[Requirement, ...]:
        if not self.capacity_types:
            return ()
        return (Requirement(key=CAPACITY_TYPE_LABEL, operator="In", values=self.capacity_types),)


@dataclass(frozen=True, slots=True)
class ClusterConfig:
    """How to reach the Kubernetes API.

    ``api_server`` left unset means in-cluster: the address comes from
    KUBERNETES_SERVICE_HOST/PORT and credentials from the service account.
    """

    api_server: str | None = None
    token: str | None = None
    token_file: str = str(SERVICE_ACCOUNT_DIR / "token")
    ca_file: str | None = str(SERVICE_ACCOUNT_DIR / "ca.crt")
    verify_tls: bool = True
    request_timeout: float = 30.0


@dataclass(frozen=True, slots=True)
class ControllerConfig:
    namespace: str | None = None
    resync_interval: float = 10.0
    workers: int = 4
    backoff_base: float = 0.005
    backoff_max: float = 1000.0
    readiness_timeout: float = 60.0


@dataclass(frozen=True, slots=True)
class Settings:
    engine: EngineConfig = field(default_factory=EngineConfig)
    pool: PoolTemplate = field(default_factory=PoolTemplate)
    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    controller: ControllerConfig = field(default_factory=ControllerConfig)
    logging: LogConfig = field(default_factory=LogConfig)


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
    path: Path | None = None,
) -> RawConfig:
    """Read and merge raw configuration.

    An explicit ``path`` replaces the project file lookup; the global file
    is still merged underneath it.
    """
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    if path is not None:
        if not path.is_file():
            raise ConfigurationError(f"Config file {path} does not exist")
        project_cfg = _read_toml(path)
    else:
        project_cfg = _read_toml((project_dir or Path.cwd()) / PROJECT_CONFIG_NAME)
    return _deep_merge(global_cfg, project_cfg)


def _check_keys(section: str, raw: RawConfig, allowed: set[str]) -> None:
    unknown = set(raw) - allowed
    if unknown:
        raise ConfigurationError(
            f"Unknown key(s) in [{section}]: {', '.join(sorted(unknown))}. "
            f"Valid: {', '.join(sorted(allowed))}"
        )


def _section(raw: RawConfig, name: str) -> RawConfig:
    value = raw.get(name, {})
    if not isinstance(value, dict):
        raise ConfigurationError(f"[{name}] must be a table")
    return dict(value)


def _conforms(value: Any, hint: Any) -> bool:
    if isinstance(hint, TypeAliasType):
        hint = hint.__value__
    origin = get_origin(hint)
    if origin is Literal:
        return value in get_args(hint)
    if origin in (Union, UnionType):
        return any(_conforms(value, h) for h in get_args(hint))
    if hint is type(None):
        return value is None
    if isinstance(value, bool) and hint is not bool:
        return False
    if hint is float:
        return isinstance(value, int | float)
    if isinstance(hint, type):
        return isinstance(value, hint)
    return True


def _describe(hint: Any) -> str:
    if isinstance(hint, TypeAliasType):
        hint = hint.__value__
    if get_origin(hint) is Literal:
        return "one of " + ", ".join(repr(a) for a in get_args(hint))
    if get_origin(hint) in (Union, UnionType):
        return " or ".join(_describe(h) for h in get_args(hint) if h is not type(None))
    return getattr(hint, "__name__", str(hint))


def _simple[T](cls: type[T], name: str, raw: RawConfig) -> T:
    """Build a flat config dataclass, checking each value against its annotation."""
    _check_keys(name, raw, {f.name for f in fields(cls)})  # type: ignore[arg-type]
    hints = get_type_hints(cls)
    for key, value in raw.items():
        if not _conforms(value, hints[key]):
            raise ConfigurationError(
                f"[{name}] {key} = {value!r} is invalid, expected {_describe(hints[key])}"
            )
    return cls(**raw)


def _build_engine(raw: RawConfig) -> EngineConfig:
    engine = _simple(EngineConfig, "engine", raw)
    if not engine.demand_key:
        raise ConfigurationError("[engine] demand_key must not be empty")
    if engine.matched_requeue <= 0 or engine.provisioned_requeue <= 0:
        raise ConfigurationError("[engine] requeue intervals must be positive")
    return engine


def _build_pool(raw: RawConfig) -> PoolTemplate:
    _check_keys(
        "pool", raw,
        {"limits", "node_class", "capacity_types", "expire_after", "disruption"},
    )
    defaults = PoolTemplate()

    limits_raw = _section(raw, "limits")
    _check_keys("pool.limits", limits_raw, {"cpu", "memory"})
    limits = Limits(
        cpu=str(limits_raw.get("cpu", defaults.limits.cpu)),
        memory=str(limits_raw.get("memory", defaults.limits.memory)),
    )

    ncr_raw = _section(raw, "node_class")
    _check_keys("pool.node_class", ncr_raw, {"group", "kind", "name"})
    for key, value in ncr_raw.items():
        if not isinstance(value, str) or not value:
            raise ConfigurationError(f"[pool.node_class] {key} must be a non-empty string")
    node_class_ref = NodeClassRef(
        group=ncr_raw.get("group", defaults.node_class_ref.group),
        kind=ncr_raw.get("kind", defaults.node_class_ref.kind),
        name=ncr_raw.get("name", defaults.node_class_ref.name),
    )

    capacity_types = raw.get("capacity_types", list(defaults.capacity_types))
    if not isinstance(capacity_types, list) or not all(isinstance(c, str) and c for c in capacity_types):
        raise ConfigurationError(
            f"[pool] capacity_types must be a list of strings, got {capacity_types!r}"
        )

    dis_raw = _section(raw, "disruption")
    _check_keys("pool.disruption", dis_raw, {"consolidation_policy", "consolidate_after", "budgets"})
    policy = dis_raw.get("consolidation_policy", defaults.disruption.consolidation_policy)
    if policy not in get_args(ConsolidationPolicy.__value__):
        raise ConfigurationError(f"[pool.disruption] invalid consolidation_policy '{policy}'")
    raw_budgets = dis_raw.get("budgets")
    try:
        budgets = (
            tuple(Budget(nodes=str(b["nodes"])) for b in raw_budgets)
            if raw_budgets is not None
            else defaults.disruption.budgets
        )
    except (KeyError, TypeError) as e:
        raise ConfigurationError(
            "[pool.disruption] budgets must be a list of tables with a 'nodes' key"
        ) from e
    disruption = Disruption(
        consolidation_policy=policy,
        consolidate_after=str(dis_raw.get("consolidate_after", defaults.disruption.consolidate_after)),
        budgets=budgets,
    )

    return PoolTemplate(
        limits=limits,
        node_class_ref=node_class_ref,
        capacity_types=tuple(capacity_types),
        expire_after=str(raw.get("expire_after", defaults.expire_after)),
        disruption=disruption,
    )


def _build_controller(raw: RawConfig) -> ControllerConfig:
    controller = _simple(ControllerConfig, "controller", raw)
    if controller.workers < 1:
        raise ConfigurationError("[controller] workers must be at least 1")
    if controller.resync_interval <= 0:
        raise ConfigurationError("[controller] resync_interval must be positive")
    return controller


def resolve_settings(raw: RawConfig) -> Settings:
    _check_keys("root", raw, {"engine", "pool", "cluster", "controller", "logging"})
    return Settings(
        engine=_build_engine(_section(raw, "engine")),
        pool=_build_pool(_section(raw, "pool")),
        cluster=_simple(ClusterConfig, "cluster", _section(raw, "cluster")),
        controller=_build_controller(_section(raw, "controller")),
        logging=_simple(LogConfig, "logging", _section(raw, "logging")),
    )


def load_settings(
    *,
    path: Path | None = None,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> Settings:
    return resolve_settings(
        load_config(path=path, project_dir=project_dir, global_path=global_path)
    )
