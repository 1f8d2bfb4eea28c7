from pathlib import Path

import pytest

from poolwright.api.model import Budget, NodeClassRef
from poolwright.config import (
    EngineConfig,
    PoolTemplate,
    Settings,
    _deep_merge,
    load_config,
    load_settings,
    resolve_settings,
)
from poolwright.core.exceptions import ConfigurationError

pytestmark = [pytest.mark.unit]


class TestDeepMerge:
    def test_shallow_override(self):
        assert _deep_merge({"a": 1, "b": 2}, {"b": 3}) == {"a": 1, "b": 3}

    def test_nested_merge(self):
        base = {"pool": {"limits": {"cpu": "8", "memory": "32Gi"}}}
        override = {"pool": {"limits": {"cpu": "16"}}}
        assert _deep_merge(base, override) == {"pool": {"limits": {"cpu": "16", "memory": "32Gi"}}}

    def test_empty_base(self):
        assert _deep_merge({}, {"a": 1}) == {"a": 1}


class TestLoadConfig:
    def test_no_files_returns_empty(self, tmp_path: Path):
        assert load_config(project_dir=tmp_path / "nope", global_path=tmp_path / "nope.toml") == {}

    def test_project_overrides_global(self, tmp_path: Path):
        global_toml = tmp_path / "defaults.toml"
        global_toml.write_text('[engine]\ndemand_key = "team"\nmatched_requeue = 2.0\n')
        project_dir = tmp_path / "project"
        project_dir.mkdir()
        (project_dir / "poolwright.toml").write_text("[engine]\nmatched_requeue = 7.5\n")

        result = load_config(project_dir=project_dir, global_path=global_toml)

        assert result == {"engine": {"demand_key": "team", "matched_requeue": 7.5}}

    def test_explicit_path_must_exist(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="does not exist"):
            load_config(path=tmp_path / "missing.toml", global_path=tmp_path / "none.toml")

    def test_invalid_toml(self, tmp_path: Path):
        bad = tmp_path / "poolwright.toml"
        bad.write_text("[engine\n")
        with pytest.raises(ConfigurationError, match="Invalid TOML"):
            load_config(path=bad, global_path=tmp_path / "none.toml")


class TestResolveSettings:
    def test_defaults_are_reference_behaviour(self):
        settings = resolve_settings({})
        assert settings == Settings()
        assert settings.engine.demand_key == "provision-for-team"
        assert settings.engine.match_on == "value"
        assert (settings.engine.matched_requeue, settings.engine.provisioned_requeue) == (5.0, 10.0)
        assert settings.controller.resync_interval == 10.0

    def test_full_file(self, tmp_path: Path):
        (tmp_path / "poolwright.toml").write_text(
            "[engine]\n"
            'demand_key = "team"\n'
            'match_on = "key_value"\n'
            "\n"
            "[pool]\n"
            'capacity_types = ["spot", "on-demand"]\n'
            'expire_after = "72h"\n'
            "\n"
            "[pool.limits]\n"
            'cpu = "64"\n'
            "\n"
            "[pool.node_class]\n"
            'name = "gpu"\n'
            "\n"
            "[pool.disruption]\n"
            'consolidation_policy = "WhenEmptyOrUnderutilized"\n'
            'budgets = [{ nodes = "1" }, { nodes = "20%" }]\n'
            "\n"
            "[controller]\n"
            'namespace = "batch"\n'
            "workers = 2\n"
            "\n"
            "[logging]\n"
            'level = "DEBUG"\n'
        )
        settings = load_settings(project_dir=tmp_path, global_path=tmp_path / "none.toml")

        assert settings.engine == EngineConfig(demand_key="team", match_on="key_value")
        assert settings.pool.capacity_types == ("spot", "on-demand")
        assert settings.pool.expire_after == "72h"
        assert settings.pool.limits.cpu == "64"
        assert settings.pool.limits.memory == PoolTemplate().limits.memory
        assert settings.pool.node_class_ref == NodeClassRef("karpenter.k8s.aws", "EC2NodeClass", "gpu")
        assert settings.pool.disruption.consolidation_policy == "WhenEmptyOrUnderutilized"
        assert settings.pool.disruption.budgets == (Budget("1"), Budget("20%"))
        assert settings.pool.disruption.consolidate_after == "10m"
        assert settings.controller.namespace == "batch"
        assert settings.controller.workers == 2
        assert settings.logging.level == "DEBUG"

    def test_unknown_section(self):
        with pytest.raises(ConfigurationError, match="Unknown key"):
            resolve_settings({"metrics": {}})

    def test_unknown_engine_key(self):
        with pytest.raises(ConfigurationError, match="demand_label"):
            resolve_settings({"engine": {"demand_label": "team"}})

    def test_invalid_match_on(self):
        with pytest.raises(ConfigurationError, match="match_on"):
            resolve_settings({"engine": {"match_on": "key"}})

    def test_invalid_taint_effect(self):
        with pytest.raises(ConfigurationError, match="taint_effect"):
            resolve_settings({"engine": {"taint_effect": "Never"}})

    def test_empty_demand_key(self):
        with pytest.raises(ConfigurationError, match="demand_key"):
            resolve_settings({"engine": {"demand_key": ""}})

    def test_invalid_consolidation_policy(self):
        with pytest.raises(ConfigurationError, match="consolidation_policy"):
            resolve_settings({"pool": {"disruption": {"consolidation_policy": "Always"}}})

    def test_malformed_budgets(self):
        with pytest.raises(ConfigurationError, match="budgets"):
            resolve_settings({"pool": {"disruption": {"budgets": ["10%"]}}})

    def test_zero_workers(self):
        with pytest.raises(ConfigurationError, match="workers"):
            resolve_settings({"controller": {"workers": 0}})

    def test_section_must_be_table(self):
        with pytest.raises(ConfigurationError, match="must be a table"):
            resolve_settings({"engine": "team"})

    def test_capacity_types_must_be_a_list(self):
        with pytest.raises(ConfigurationError, match="capacity_types"):
            resolve_settings({"pool": {"capacity_types": "on-demand"}})

    def test_capacity_types_entries_must_be_strings(self):
        with pytest.raises(ConfigurationError, match="capacity_types"):
            resolve_settings({"pool": {"capacity_types": ["spot", 1]}})

    def test_empty_capacity_types_allowed(self):
        assert resolve_settings({"pool": {"capacity_types": []}}).pool.requirements == ()

    def test_node_class_name_must_be_a_string(self):
        with pytest.raises(ConfigurationError, match="pool.node_class"):
            resolve_settings({"pool": {"node_class": {"name": 7}}})


class TestValueTypes:
    @pytest.mark.parametrize(
        ("section", "key", "value"),
        [
            ("engine", "matched_requeue", "5"),
            ("engine", "demand_key", 5),
            ("engine", "provisioned_requeue", True),
            ("controller", "workers", "4"),
            ("controller", "workers", 2.5),
            ("controller", "namespace", 1),
            ("cluster", "verify_tls", "no"),
            ("cluster", "request_timeout", "30s"),
            ("logging", "level", "VERBOSE"),
            ("logging", "retention", "10"),
        ],
    )
    def test_wrong_type_is_configuration_error(self, section: str, key: str, value: object):
        with pytest.raises(ConfigurationError, match=rf"\[{section}\] {key} = "):
            resolve_settings({section: {key: value}})

    def test_int_accepted_for_float(self):
        settings = resolve_settings({"engine": {"matched_requeue": 3}, "controller": {"resync_interval": 1}})
        assert settings.engine.matched_requeue == 3
        assert settings.controller.resync_interval == 1

    def test_optional_string_accepts_value(self):
        assert resolve_settings({"cluster": {"ca_file": "/etc/ca.pem"}}).cluster.ca_file == "/etc/ca.pem"

    def test_message_lists_choices(self):
        with pytest.raises(ConfigurationError, match="one of 'TRACE', 'DEBUG'"):
            resolve_settings({"logging": {"level": "VERBOSE"}})
