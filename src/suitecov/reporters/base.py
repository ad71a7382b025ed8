"""Base types shared by the coverage reporters."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from more_itertools import consecutive_groups

from suitecov.core.model.thresholds import classify

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from rich.console import Console

    from suitecov.core.model.options import Watermarks
    from suitecov.core.model.summary import FileCoverage, SummaryCounts, SummarySnapshot
    from suitecov.core.model.types import Metric, WatermarkBand


@dataclass(slots=True)
class ReporterContext:
    """Everything a reporter needs besides the snapshot."""

    directory: Path
    root: Path
    watermarks: Watermarks
    options: Mapping[str, Any] = field(default_factory=dict)
    skip_full: bool = False
    console: Console | None = None

    def option(self, name: str, default: Any = None) -> Any:
        return self.options.get(name, default)

    def output_path(self, default_name: str) -> Path:
        target = self.directory / str(self.option("file", default_name))
        target.parent.mkdir(parents=True, exist_ok=True)
        return target

    def band(self, metric: Metric, percentage: float) -> WatermarkBand:
        return classify(percentage, self.watermarks.get(metric))


class Reporter(Protocol):
    def __call__(self, snapshot: SummarySnapshot, ctx: ReporterContext) -> None: ...


def display_path(path: str, root: Path) -> str:
    p = Path(path)
    try:
        return p.resolve().relative_to(root.resolve()).as_posix()
    except (OSError, ValueError):
        return p.as_posix()


def visible_files(snapshot: SummarySnapshot, ctx: ReporterContext) -> list[FileCoverage]:
    skip_full = bool(ctx.option("skip_full", ctx.skip_full))
    return [f for f in snapshot if not (skip_full and f.is_full())]


def format_ranges(lines: Iterable[int]) -> str:
    """Return ``"3-5,9"`` style ranges for sorted line numbers."""
    parts: list[str] = []
    for group in consecutive_groups(sorted(set(lines))):
        run = list(group)
        parts.append(str(run[0]) if len(run) == 1 else f"{run[0]}-{run[-1]}")
    return ",".join(parts)


def split_key(key: str) -> tuple[str, int]:
    """Split ``"name:line"`` counter keys; keys without a line number map to line 0."""
    name, sep, line = key.rpartition(":")
    if not sep or not line.isdigit():
        return key, 0
    return name, int(line)


def metric_summary(counts: SummaryCounts) -> dict[str, Any]:
    return {
        "total": counts.total,
        "covered": counts.covered,
        "skipped": 0,
        "pct": round(counts.pct, 2),
    }


__all__ = [
    "Reporter",
    "ReporterContext",
    "display_path",
    "format_ranges",
    "metric_summary",
    "split_key",
    "visible_files",
]
