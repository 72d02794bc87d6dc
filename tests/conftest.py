"""
Pytest configuration and fixtures for healthscope tests.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Generator, Optional

import pytest

from healthscope.analysis.divergence import ExpectationLoader
from healthscope.config import HealthScopeConfig, get_config, reset_config
from healthscope.models import LogRecord, SemanticMetadata
from healthscope.routing import RoutingLoader


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Point every test at its own log and debug directories."""
    for key in list(os.environ):
        if key.startswith("HEALTHSCOPE_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("HEALTHSCOPE_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("HEALTHSCOPE_DEBUG_DIR", str(tmp_path / "debug"))
    monkeypatch.chdir(tmp_path)
    reset_config()
    RoutingLoader.clear_cache()
    ExpectationLoader.clear_cache()

    yield

    reset_config()
    RoutingLoader.clear_cache()
    ExpectationLoader.clear_cache()


@pytest.fixture
def config() -> HealthScopeConfig:
    return get_config()


@pytest.fixture
def log_dir(config: HealthScopeConfig) -> Path:
    return Path(config.log_dir)


# ============================================================================
# Record Fixtures
# ============================================================================


BASE_TIME = datetime(2026, 1, 2, 15, 4, 5)


@pytest.fixture
def make_record() -> Callable[..., LogRecord]:
    """Factory for LogRecords with sequential timestamps."""
    counter = {"n": 0}

    def _make(
        level: str,
        event: str = "",
        impact: int = 0,
        context_id: str = "validate-1-100",
        component: str = "validate",
        normalized: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
        semantic: Optional[SemanticMetadata] = None,
    ) -> LogRecord:
        counter["n"] += 1
        return LogRecord(
            timestamp=BASE_TIME + timedelta(seconds=counter["n"]),
            level=level,
            component=component,
            user="ada@host:42",
            context_id=context_id,
            event=event,
            raw_health=impact,
            normalized_health=impact if normalized is None else normalized,
            health_impact=impact,
            details=details or {},
            semantic=semantic,
        )

    return _make
