"""
Component to log-subdirectory routing.

Each component writes to ``<log_dir>/<bucket>/<component>.log``.  The bucket
comes from a routing table that can be loaded from YAML::

    buckets:
      commands: [validate, test, status, diagnose, healthscope]
      libraries: [operations, environment, display]
      scripts: [build]
    default_bucket: system

Components not listed in any bucket fall into ``default_bucket``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from healthscope.config import HealthScopeConfig, get_config
from healthscope.loader import BaseTableLoader


DEFAULT_BUCKETS: dict[str, list[str]] = {
    "commands": ["validate", "test", "status", "diagnose", "healthscope"],
    "libraries": [
        "operations", "sudoers", "environment", "display", "logging", "debugging",
    ],
    "scripts": ["build"],
}


class RoutingTable(BaseModel):
    """Maps component names to log subdirectories."""

    buckets: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_BUCKETS.items()}
    )
    default_bucket: str = "system"

    def bucket_for(self, component: str) -> str:
        for bucket, members in self.buckets.items():
            if component in members:
                return bucket
        return self.default_bucket


class RoutingLoader(BaseTableLoader[RoutingTable]):
    _model_class = RoutingTable

    def _log_loaded(self, table: RoutingTable, key: str) -> None:
        self._logger.debug(
            "Loaded routing table: buckets=%d, default=%s (%s)",
            len(table.buckets),
            table.default_bucket,
            key,
        )


def load_routing_table(config: Optional[HealthScopeConfig] = None) -> RoutingTable:
    """Load the configured routing table, or the built-in defaults.

    Raises:
        ConfigurationError: If a routing file is configured but unusable.
    """
    config = config or get_config()
    return RoutingLoader().load_optional(config.routing_file) or RoutingTable()


def log_path_for(
    component: str,
    config: Optional[HealthScopeConfig] = None,
    table: Optional[RoutingTable] = None,
) -> Path:
    """Resolve the log file a component writes to."""
    config = config or get_config()
    table = table or RoutingTable()
    bucket = table.bucket_for(component)
    return config.get_log_path(bucket) / f"{component}{config.log_file_extension}"
