from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from suitecov.core.model.options import Thresholds, Watermarks
from suitecov.core.model.types import FULL_COVERAGE, Metric, WatermarkBand

if TYPE_CHECKING:
    from suitecov.core.model.summary import SummaryCounts, SummarySnapshot
    from suitecov.core.model.types import Watermark

_THRESHOLD_PATTERN = re.compile(r"^[a-zA-Z_-]+=")

_METRIC_ALIASES: dict[str, Metric] = {
    "line": Metric.LINES,
    "lines": Metric.LINES,
    "fn": Metric.FUNCTIONS,
    "function": Metric.FUNCTIONS,
    "functions": Metric.FUNCTIONS,
    "br": Metric.BRANCHES,
    "branch": Metric.BRANCHES,
    "branches": Metric.BRANCHES,
    "stmt": Metric.STATEMENTS,
    "statement": Metric.STATEMENTS,
    "statements": Metric.STATEMENTS,
}


@dataclass(frozen=True, slots=True)
class ThresholdFailure:
    """Details of a failed threshold evaluation.

    ``file`` is ``None`` for the aggregate check and the file path when
    thresholds are evaluated per file.
    """

    metric: Metric
    required: float
    actual: float
    comparison: str = ">="
    file: str | None = None


@dataclass(frozen=True, slots=True)
class ThresholdsResult:
    """Outcome of evaluating thresholds and watermarks.

    Fields
    ------
    passed:
        ``True`` when no configured metric fell below its threshold.
    failures:
        One entry per failing metric (per file when ``per_file`` is set).
    percentages:
        Aggregate percentage per metric.
    bands:
        Watermark band of each aggregate percentage.
    updated:
        Ratcheted thresholds to persist, or ``None`` when auto-update is off,
        the run failed, or nothing moved.
    """

    passed: bool
    failures: list[ThresholdFailure]
    percentages: dict[Metric, float] = field(default_factory=dict)
    bands: dict[Metric, WatermarkBand] = field(default_factory=dict)
    updated: Thresholds | None = None


def parse_threshold(expression: str) -> Thresholds:
    """Parse a threshold expression like 'lines=90,branches=80,functions=75'."""
    if not expression or not expression.strip():
        msg = "threshold expression must be non-empty"
        raise ValueError(msg)

    values: dict[str, float] = {}
    tokens = [token.strip() for token in re.split(r"[,\s]+", expression) if token.strip()]
    for token in tokens:
        if "=" not in token or not _THRESHOLD_PATTERN.match(token):
            msg = f"invalid threshold token: {token!r}"
            raise ValueError(msg)

        key, raw_value = token.split("=", 1)
        key = key.strip().lower()
        metric = _METRIC_ALIASES.get(key)
        if metric is None:
            msg = f"unknown threshold metric: {key!r}"
            raise ValueError(msg)
        if metric.value in values:
            msg = f"duplicate percentage constraint in {token!r}"
            raise ValueError(msg)
        values[metric.value] = _parse_percentage(raw_value.strip().rstrip("%"), token=token)

    return Thresholds(**values)


def classify(percentage: float, watermark: Watermark) -> WatermarkBand:
    """Band *percentage* against a ``(low, high)`` watermark pair."""
    low, high = watermark
    if percentage < low:
        return WatermarkBand.LOW
    if percentage >= high:
        return WatermarkBand.HIGH
    return WatermarkBand.MEDIUM


def evaluate(
    snapshot: SummarySnapshot,
    thresholds: Thresholds,
    *,
    per_file: bool = False,
    watermarks: Watermarks | None = None,
    auto_update: bool = False,
) -> ThresholdsResult:
    """Evaluate *thresholds* against a summary snapshot.

    With ``per_file`` every tracked file is checked on its own and the
    aggregate is not gated; otherwise only the aggregate is checked.
    """
    marks = watermarks or Watermarks()
    percentages = {metric: snapshot.totals(metric).pct for metric in Metric}
    bands = {metric: classify(percentages[metric], marks.get(metric)) for metric in Metric}

    required = thresholds.configured()
    failures: list[ThresholdFailure] = []
    if per_file:
        for file in snapshot:
            failures.extend(_check(required, {m: file.counts(m) for m in required}, file=file.path))
    else:
        failures.extend(_check(required, {m: snapshot.totals(m) for m in required}, file=None))

    passed = not failures
    updated = _ratchet(thresholds, percentages) if auto_update and passed else None
    return ThresholdsResult(
        passed=passed,
        failures=failures,
        percentages=percentages,
        bands=bands,
        updated=updated,
    )


def _check(
    required: dict[Metric, float],
    counts: dict[Metric, SummaryCounts],
    *,
    file: str | None,
) -> list[ThresholdFailure]:
    failures: list[ThresholdFailure] = []
    for metric, minimum in required.items():
        actual = counts[metric].pct
        if actual < minimum:
            failures.append(ThresholdFailure(metric=metric, required=minimum, actual=actual, file=file))
    return failures


def _ratchet(thresholds: Thresholds, percentages: dict[Metric, float]) -> Thresholds | None:
    changed: dict[str, float] = {}
    for metric, previous in thresholds.configured().items():
        observed = math.floor(percentages[metric] * 100) / 100
        if observed > previous:
            changed[metric.value] = observed
    if not changed:
        return None
    current = {metric.value: value for metric, value in thresholds.configured().items()}
    return Thresholds(**{**current, **changed})


def _parse_percentage(value: str, *, token: str) -> float:
    try:
        percent = float(value)
    except ValueError as exc:
        msg = f"invalid percentage value in {token!r}: {value!r}"
        raise ValueError(msg) from exc
    if percent < 0 or percent > float(FULL_COVERAGE):
        msg = f"percentage out of range in {token!r}: {percent}"
        raise ValueError(msg)
    return percent


__all__ = [
    "ThresholdFailure",
    "ThresholdsResult",
    "classify",
    "evaluate",
    "parse_threshold",
]
