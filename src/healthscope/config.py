"""
Centralized configuration for healthscope.

Uses Pydantic BaseSettings for environment variable integration
and validation. All configurable values should be defined here.

Configuration sources (in order of precedence):
1. Explicit constructor arguments
2. Environment variables (HEALTHSCOPE_*)
3. .env file
4. Default values

Example:
    from healthscope.config import get_config

    config = get_config()
    print(config.log_dir)  # From HEALTHSCOPE_LOG_DIR or default

    # Override at runtime
    config = get_config(log_dir="/tmp/logs")
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class HealthScopeConfig(BaseSettings):
    """
    Central configuration for healthscope.

    All settings can be overridden via environment variables
    prefixed with HEALTHSCOPE_.

    Example:
        export HEALTHSCOPE_LOG_DIR=/var/log/healthscope
        export HEALTHSCOPE_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="HEALTHSCOPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Output locations
    log_dir: str = Field(
        default="~/.healthscope/logs",
        description="Root directory for per-component health logs",
    )
    debug_dir: str = Field(
        default="~/.healthscope/debug",
        description="Root directory for state inspector sessions",
    )
    log_file_extension: str = Field(default=".log")
    debug_file_extension: str = Field(default=".debug")

    # Optional YAML tables
    routing_file: Optional[str] = Field(
        default=None,
        description="YAML file mapping component names to log subdirectories",
    )
    expectations_file: Optional[str] = Field(
        default=None,
        description="YAML file declaring expected health impacts per check",
    )

    # Rotation
    rotation_max_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        description="Rotate a log file once it reaches this size",
    )
    rotation_keep: int = Field(
        default=5,
        ge=1,
        description="Number of rotated files kept per component",
    )

    # Context capture
    full_context_levels: list[str] = Field(
        default_factory=lambda: [
            "OPERATION", "FAILURE", "ERROR", "CONTEXT", "SNAPSHOT", "DEBUG",
        ],
        description="Levels that capture the full environment snapshot",
    )
    env_capture_prefix: str = Field(
        default="HEALTHSCOPE_",
        description="Environment variables with this prefix are captured",
    )

    inspect: bool = Field(
        default=False,
        description="Write a state inspector session for each CLI run",
    )

    # Health impacts for HealthEmitter.run_command
    command_operation_impact: int = Field(default=0)
    command_success_impact: int = Field(default=10)
    command_failure_impact: int = Field(default=-10)

    # Assessment thresholds
    critical_threshold: int = Field(
        default=-30,
        description="Final health below this is a critical issue",
    )
    degraded_threshold: int = Field(
        default=0,
        description="Final health below this is a warning",
    )
    warning_threshold: int = Field(
        default=50,
        description="Overall health below this triggers a validation hint",
    )
    warning_count_threshold: int = Field(
        default=5,
        ge=0,
        description="More WARNING records than this is a warning",
    )

    # Logging
    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="warning",
        description="Level for healthscope's own diagnostic logging",
    )

    @field_validator("log_dir", "debug_dir", "routing_file", "expectations_file")
    @classmethod
    def expand_path(cls, v: Optional[str]) -> Optional[str]:
        """Expand ~ and environment variables in paths."""
        if v is None:
            return v
        return os.path.expanduser(os.path.expandvars(v))

    @field_validator("full_context_levels")
    @classmethod
    def upper_levels(cls, v: list[str]) -> list[str]:
        return [level.upper() for level in v]

    def get_log_path(self, bucket: Optional[str] = None) -> Path:
        """Get the log directory, optionally for one routing bucket."""
        base = Path(self.log_dir)
        if bucket:
            return base / bucket
        return base

    def get_debug_path(self, component: Optional[str] = None) -> Path:
        """Get the debug directory, optionally for one component."""
        base = Path(self.debug_dir)
        if component:
            return base / component
        return base


# Global singleton
_config: Optional[HealthScopeConfig] = None


def get_config(**overrides) -> HealthScopeConfig:
    """
    Get the global configuration instance.

    Creates a singleton on first call. Subsequent calls return
    the same instance unless overrides are provided.

    Args:
        **overrides: Override any config values

    Returns:
        HealthScopeConfig instance
    """
    global _config

    if overrides or _config is None:
        _config = HealthScopeConfig(**overrides)

    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
