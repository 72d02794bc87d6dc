"""
Health normalization and display helpers.

Components score their work on the Base100 convention: a fully successful
run sums to roughly 100 points.  ``normalize_health`` turns a raw running
sum into a percentage of the declared total, clamped to -100..+100.

Integer arithmetic is used throughout so a parser recomputing health from
stored impacts reproduces the stored value exactly.
"""

from __future__ import annotations

from typing import Iterable, NamedTuple, Optional

HEALTH_MIN = -100
HEALTH_MAX = 100
BAR_WIDTH = 40


class HealthRange(NamedTuple):
    threshold: int
    indicator: str
    description: str


# Checked top-down; the first threshold <= health wins.
DEFAULT_HEALTH_RANGES: tuple[HealthRange, ...] = (
    HealthRange(90, "💚", "Excellent - all systems healthy"),
    HealthRange(80, "💙", "Very Good - minor issues only"),
    HealthRange(70, "💛", "Good - some concerns"),
    HealthRange(60, "🧡", "Above Average - noticeable issues"),
    HealthRange(50, "❤️", "Average - mixed results"),
    HealthRange(40, "🤍", "Below Average - attention needed"),
    HealthRange(30, "💔", "Fair - significant problems"),
    HealthRange(20, "🩹", "Poor - major issues"),
    HealthRange(10, "⚠️", "Warning - critical attention needed"),
    HealthRange(1, "☠️", "Critical - near failure"),
    HealthRange(0, "⚫", "Neutral - balanced state"),
    HealthRange(-9, "🔴", "Slight Negative - minor damage"),
    HealthRange(-19, "🟠", "Negative - noticeable degradation"),
    HealthRange(-29, "🟡", "Declining - system weakening"),
    HealthRange(-39, "🟢", "Degraded - significant damage"),
    HealthRange(-49, "🔵", "Damaged - major problems"),
    HealthRange(-59, "🟣", "Severe - critical damage"),
    HealthRange(-69, "🟤", "Critical - near failure"),
    HealthRange(-79, "⚫", "Failing - barely functional"),
    HealthRange(-89, "⬛", "Near Death - almost gone"),
    HealthRange(-100, "💀", "Dead - complete failure"),
)


def clamp_health(value: int) -> int:
    """Clamp a health value to -100..+100."""
    return max(HEALTH_MIN, min(HEALTH_MAX, value))


def truncated_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -quotient
    return quotient


def normalize_health(raw: int, total: int) -> int:
    """Normalize a raw running sum against a declared total.

    The percentage is truncated toward zero before clamping.  With no
    declared total (``total == 0``) the raw value is clamped as-is.
    """
    if total == 0:
        return clamp_health(raw)
    return clamp_health(truncated_div(raw * 100, total))


def replay_health(impacts: Iterable[int], total: int) -> list[int]:
    """Recompute the normalized health after each impact in order."""
    history: list[int] = []
    running = 0
    for impact in impacts:
        running += impact
        history.append(normalize_health(running, total))
    return history


def health_range(
    health: int,
    ranges: Optional[Iterable[HealthRange]] = None,
) -> Optional[HealthRange]:
    for entry in ranges or DEFAULT_HEALTH_RANGES:
        if health >= entry.threshold:
            return entry
    return None


def health_indicator(health: int, ranges: Optional[Iterable[HealthRange]] = None) -> str:
    entry = health_range(health, ranges)
    return entry.indicator if entry else "❓"


def health_bar(health: int, width: int = BAR_WIDTH) -> str:
    """Render health as a fixed-width bar on a 0..100 scale."""
    shifted = (clamp_health(health) + 100) // 2
    filled = (shifted * width) // 100
    return "[{}{}] ({}/100)".format("█" * filled, "░" * (width - filled), shifted)
