"""Tests for component log routing and the YAML table loader."""

import pytest
from pydantic import ValidationError

from healthscope.config import HealthScopeConfig
from healthscope.loader import ConfigurationError
from healthscope.routing import (
    RoutingLoader,
    RoutingTable,
    load_routing_table,
    log_path_for,
)

ROUTING_YAML = """\
buckets:
  tools: [lint, fmt]
default_bucket: misc
"""


class TestRoutingTable:
    @pytest.mark.parametrize(
        "component,bucket",
        [
            ("validate", "commands"),
            ("healthscope", "commands"),
            ("environment", "libraries"),
            ("build", "scripts"),
            ("something-new", "system"),
        ],
    )
    def test_default_buckets(self, component, bucket):
        assert RoutingTable().bucket_for(component) == bucket

    def test_defaults_are_not_shared(self):
        first = RoutingTable()
        first.buckets["commands"].append("extra")
        assert "extra" not in RoutingTable().buckets["commands"]


class TestRoutingLoader:
    def test_load_from_string(self):
        table = RoutingLoader().load_from_string(ROUTING_YAML)
        assert table.bucket_for("lint") == "tools"
        assert table.bucket_for("validate") == "misc"

    def test_load_caches_per_path(self, tmp_path):
        path = tmp_path / "routing.yaml"
        path.write_text(ROUTING_YAML)
        loader = RoutingLoader()
        assert loader.load(path) is loader.load(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            RoutingLoader().load(tmp_path / "nope.yaml")

    def test_non_mapping_root(self):
        with pytest.raises(TypeError):
            RoutingLoader().load_from_string("- a\n- b\n")

    def test_non_mapping_file_names_path(self, tmp_path):
        path = tmp_path / "routing.yaml"
        path.write_text("just a string\n")
        with pytest.raises(TypeError, match="routing.yaml: top level must be a mapping, not str"):
            RoutingLoader().load(path)
        with pytest.raises(ConfigurationError, match="RoutingLoader cannot use"):
            RoutingLoader().load_optional(str(path))

    def test_schema_violation(self):
        with pytest.raises(ValidationError):
            RoutingLoader().load_from_string("buckets: [1, 2]\n")

    def test_load_optional_unset(self):
        assert RoutingLoader().load_optional(None) is None

    def test_load_optional_wraps_errors(self, tmp_path):
        with pytest.raises(ConfigurationError):
            RoutingLoader().load_optional(str(tmp_path / "missing.yaml"))


class TestLoadRoutingTable:
    def test_builtin_when_unset(self, config):
        assert load_routing_table(config).bucket_for("validate") == "commands"

    def test_configured_file(self, tmp_path):
        path = tmp_path / "routing.yaml"
        path.write_text(ROUTING_YAML)
        config = HealthScopeConfig(routing_file=str(path))
        assert load_routing_table(config).bucket_for("fmt") == "tools"


class TestLogPathFor:
    def test_routed_path(self, tmp_path):
        config = HealthScopeConfig(log_dir=str(tmp_path))
        assert log_path_for("validate", config) == tmp_path / "commands" / "validate.log"

    def test_unrouted_goes_to_default_bucket(self, tmp_path):
        config = HealthScopeConfig(log_dir=str(tmp_path))
        assert log_path_for("mystery", config) == tmp_path / "system" / "mystery.log"

    def test_custom_table(self, tmp_path):
        config = HealthScopeConfig(log_dir=str(tmp_path))
        table = RoutingLoader().load_from_string(ROUTING_YAML)
        assert log_path_for("lint", config, table) == tmp_path / "tools" / "lint.log"
