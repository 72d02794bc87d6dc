"""
YAML-backed tables for routing and expectations.

A table file is a YAML mapping that validates against one pydantic model.
``RoutingLoader`` and ``ExpectationLoader`` subclass ``BaseTableLoader``
and name their model; parsed tables are cached per resolved path for the
life of the process.  ``load_optional`` is the entry point used with
configuration: an unset path means "use the built-ins" and a bad file
surfaces as ``ConfigurationError``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, ClassVar, Generic, Optional, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

T = TypeVar("T", bound=BaseModel)


class HealthScopeError(Exception):
    """Base class for errors raised to healthscope library callers."""


class ConfigurationError(HealthScopeError):
    """A configured table file exists but cannot be used."""


class BaseTableLoader(Generic[T]):
    """Reads one kind of table; subclasses set ``_model_class``."""

    _model_class: type[T]
    _cache: ClassVar[dict[str, BaseModel]] = {}
    _logger: ClassVar[logging.Logger]

    def __init_subclass__(cls, **kwargs: object) -> None:
        super().__init_subclass__(**kwargs)
        # Separate cache per table kind
        cls._cache = {}
        cls._logger = logging.getLogger(cls.__module__)

    @classmethod
    def clear_cache(cls) -> None:
        cls._cache.clear()

    def _validate(self, raw: Any, source: str) -> T:
        if not isinstance(raw, dict):
            raise TypeError(f"{source}: top level must be a mapping, not {type(raw).__name__}")
        return self._model_class.model_validate(raw)

    def load(self, path: Path) -> T:
        """Parse and validate ``path``, reusing an earlier result for the same file.

        Raises ``FileNotFoundError``, ``TypeError`` for a non-mapping root,
        ``yaml.YAMLError`` or ``pydantic.ValidationError``.
        """
        key = str(path.resolve())
        if key in self._cache:
            self._logger.debug("%s reusing %s", type(self).__name__, key)
            return self._cache[key]  # type: ignore[return-value]

        if not path.exists():
            raise FileNotFoundError(f"No table at {path}")
        with open(path, encoding="utf-8") as fh:
            table = self._validate(yaml.safe_load(fh), str(path))

        self._cache[key] = table
        self._log_loaded(table, key)
        return table

    def load_from_string(self, yaml_str: str) -> T:
        return self._validate(yaml.safe_load(yaml_str), "<string>")

    def load_optional(self, path: Optional[str]) -> Optional[T]:
        """``None`` when no path is set; a ``ConfigurationError`` when it is unusable."""
        if not path:
            return None
        try:
            return self.load(Path(path))
        except (OSError, TypeError, yaml.YAMLError, ValidationError) as exc:
            raise ConfigurationError(f"{type(self).__name__} cannot use {path}: {exc}") from exc

    def _log_loaded(self, table: T, key: str) -> None:
        self._logger.debug("Loaded %s from %s", type(self).__name__, key)
