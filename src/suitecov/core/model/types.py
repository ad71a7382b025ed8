"""Shared type aliases and enumerations used across suitecov."""

from __future__ import annotations

from enum import StrEnum
from typing import TypeAlias

FULL_COVERAGE = 100

# ---------------------------------------------------------------------------
# Common type aliases
# ---------------------------------------------------------------------------

HitMap: TypeAlias = dict[str, int]
"""Counter key (statement id, function name, branch key or line) to hit count."""

Watermark: TypeAlias = tuple[float, float]
"""Inclusive ``(low, high)`` percentage pair used to band coverage values."""


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ProviderKind(StrEnum):
    """Coverage provider variants."""

    NATIVE = "native"
    INSTRUMENT = "instrument"
    CUSTOM = "custom"


class Metric(StrEnum):
    """Coverage metrics, in evaluation and report order."""

    LINES = "lines"
    FUNCTIONS = "functions"
    BRANCHES = "branches"
    STATEMENTS = "statements"


class WatermarkBand(StrEnum):
    """Classification of a percentage against its watermark pair."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


__all__ = [
    "FULL_COVERAGE",
    "HitMap",
    "Metric",
    "ProviderKind",
    "Watermark",
    "WatermarkBand",
]
