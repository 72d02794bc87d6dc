"""
Map divergences to named remediation strategies.

Routing is advisory: a ``RestorationRoute`` names what a downstream
remediation tool could run, with parameters.  Nothing here executes it.

Selection order for one divergence:

1. a ``recovery_strategy`` declared on the originating record;
2. a caller-supplied override keyed by error type, then by recovery hint;
3. the default table keyed by error type, then by recovery hint.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

from pydantic import BaseModel, Field

from healthscope.models import (
    SEVERITY_RANK,
    ErrorType,
    HealthDivergence,
    RecoveryHint,
    SystemAssessment,
)

logger = logging.getLogger(__name__)

# error type -> (strategy, implied recovery hint)
DEFAULT_ERROR_STRATEGIES: dict[str, tuple[str, str]] = {
    ErrorType.FILE_NOT_FOUND.value: ("restore_missing_file", RecoveryHint.AUTOMATED_FIX.value),
    ErrorType.PERMISSION_DENIED.value: ("fix_permissions", RecoveryHint.MANUAL_INTERVENTION.value),
    ErrorType.PARSE_ERROR.value: ("repair_syntax", RecoveryHint.MANUAL_INTERVENTION.value),
    ErrorType.VALIDATION_ERROR.value: ("revalidate_config", RecoveryHint.UPDATE_CONFIG.value),
    ErrorType.MISSING_DEPENDENCY.value: ("install_dependency", RecoveryHint.INSTALL_DEPENDENCY.value),
    ErrorType.TIMEOUT.value: ("retry_with_backoff", RecoveryHint.RETRY.value),
    ErrorType.UNEXPECTED_VALUE.value: ("collect_diagnostics", RecoveryHint.INVESTIGATE.value),
    ErrorType.RESOURCE_EXHAUSTED.value: ("free_resources", RecoveryHint.MANUAL_INTERVENTION.value),
}

DEFAULT_HINT_STRATEGIES: dict[str, str] = {
    RecoveryHint.AUTOMATED_FIX.value: "apply_automated_fix",
    RecoveryHint.INSTALL_DEPENDENCY.value: "install_dependency",
    RecoveryHint.UPDATE_CONFIG.value: "update_configuration",
    RecoveryHint.RETRY.value: "retry_operation",
    RecoveryHint.MANUAL_INTERVENTION.value: "escalate_to_operator",
    RecoveryHint.INVESTIGATE.value: "collect_diagnostics",
}

AUTOMATED_HINTS = frozenset(
    {
        RecoveryHint.AUTOMATED_FIX.value,
        RecoveryHint.INSTALL_DEPENDENCY.value,
        RecoveryHint.UPDATE_CONFIG.value,
        RecoveryHint.RETRY.value,
    }
)

SOURCE_DECLARED = "declared"
SOURCE_DERIVED = "derived"


class RestorationRoute(BaseModel):
    """A proposed remediation for one divergence."""

    component: str
    check_name: str
    strategy: str
    params: dict[str, Any] = Field(default_factory=dict)
    recovery_hint: str = ""
    automated: bool = False
    priority: str
    source: str


class RestorationRouter:
    """Choose a restoration strategy from a divergence's semantic metadata."""

    def __init__(self, strategies: Optional[Mapping[str, str]] = None) -> None:
        """
        Args:
            strategies: Overrides keyed by error type or recovery hint,
                consulted before the default tables.
        """
        self.strategies = dict(strategies or {})

    def _derive(self, div: HealthDivergence) -> Optional[tuple[str, str]]:
        """(strategy, hint) from overrides and defaults, or ``None``."""
        implied_hint = ""
        if div.error_type in DEFAULT_ERROR_STRATEGIES:
            implied_hint = DEFAULT_ERROR_STRATEGIES[div.error_type][1]
        hint = div.recovery_hint or implied_hint

        for key in (div.error_type, div.recovery_hint):
            if key and key in self.strategies:
                return self.strategies[key], hint
        if div.error_type in DEFAULT_ERROR_STRATEGIES:
            return DEFAULT_ERROR_STRATEGIES[div.error_type][0], hint
        if div.recovery_hint in DEFAULT_HINT_STRATEGIES:
            return DEFAULT_HINT_STRATEGIES[div.recovery_hint], hint
        return None

    def route(self, div: HealthDivergence) -> Optional[RestorationRoute]:
        """Route one divergence; ``None`` when it carries nothing to route on."""
        if div.recovery_strategy:
            strategy, source = div.recovery_strategy, SOURCE_DECLARED
            hint = div.recovery_hint
        else:
            derived = self._derive(div)
            if derived is None:
                return None
            (strategy, hint), source = derived, SOURCE_DERIVED

        params = dict(div.error_details)
        params.update(div.recovery_params)
        return RestorationRoute(
            component=div.component,
            check_name=div.check_name,
            strategy=strategy,
            params=params,
            recovery_hint=hint,
            automated=hint in AUTOMATED_HINTS,
            priority=div.severity,
            source=source,
        )

    def route_all(self, assessment: SystemAssessment) -> list[RestorationRoute]:
        """Routes for every routable divergence, most severe first."""
        routes = [
            route
            for route in (self.route(div) for div in assessment.divergences)
            if route is not None
        ]
        routes.sort(
            key=lambda r: (SEVERITY_RANK.get(r.priority, len(SEVERITY_RANK)), r.component, r.check_name)
        )
        logger.debug("Routed %d divergences", len(routes))
        return routes
