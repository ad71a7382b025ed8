"""Aggregated coverage model.

Workers send per-file hit maps; the provider merges them into a
:class:`CoverageSummary` by summing hits per counter key. Merging is
commutative and associative, so the arrival order of suites never changes
the result.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from suitecov.core.model.metrics import pct
from suitecov.core.model.types import HitMap, Metric


@dataclass(frozen=True, slots=True)
class SummaryCounts:
    total: int
    covered: int

    def __post_init__(self) -> None:
        """Validate that counts are non-negative and consistent."""
        if self.total < 0 or self.covered < 0:
            msg = "SummaryCounts fields must be >= 0"
            raise ValueError(msg)
        if self.covered > self.total:
            msg = "SummaryCounts requires covered <= total"
            raise ValueError(msg)

    @property
    def missed(self) -> int:
        return self.total - self.covered

    @property
    def pct(self) -> float:
        return pct(self.covered, self.total)

    def __add__(self, other: SummaryCounts) -> SummaryCounts:
        return SummaryCounts(total=self.total + other.total, covered=self.covered + other.covered)


EMPTY_COUNTS = SummaryCounts(total=0, covered=0)


def _merge_hits(into: HitMap, hits: Mapping[str, int]) -> None:
    for key, count in hits.items():
        into[str(key)] = into.get(str(key), 0) + int(count)


def _counts(hits: Mapping[str, int]) -> SummaryCounts:
    return SummaryCounts(total=len(hits), covered=sum(1 for n in hits.values() if n > 0))


@dataclass(slots=True)
class FileCoverage:
    """Hit maps for a single source file."""

    path: str
    statements: HitMap = field(default_factory=dict)
    functions: HitMap = field(default_factory=dict)
    branches: HitMap = field(default_factory=dict)
    lines: HitMap = field(default_factory=dict)

    def hits(self, metric: Metric) -> HitMap:
        return getattr(self, metric.value)

    def merge(self, data: Mapping[str, Mapping[str, int]]) -> None:
        for metric in Metric:
            _merge_hits(self.hits(metric), data.get(metric.value, {}))

    def counts(self, metric: Metric) -> SummaryCounts:
        return _counts(self.hits(metric))

    def is_full(self) -> bool:
        """Return ``True`` when statements, branches and functions are all fully covered."""
        return all(
            self.counts(m).covered == self.counts(m).total
            for m in (Metric.STATEMENTS, Metric.BRANCHES, Metric.FUNCTIONS)
        )

    def uncovered_lines(self) -> list[int]:
        return sorted(int(line) for line, n in self.lines.items() if n == 0)

    def copy(self) -> FileCoverage:
        return FileCoverage(
            path=self.path,
            statements=dict(self.statements),
            functions=dict(self.functions),
            branches=dict(self.branches),
            lines=dict(self.lines),
        )

    def to_dict(self) -> dict[str, HitMap]:
        return {metric.value: dict(self.hits(metric)) for metric in Metric}


@dataclass(frozen=True, slots=True)
class SummarySnapshot:
    """Read-only view of a summary at the moment rendering began."""

    files: Mapping[str, FileCoverage]

    def __iter__(self) -> Iterator[FileCoverage]:
        return iter(self.files[path] for path in sorted(self.files))

    def __len__(self) -> int:
        return len(self.files)

    def totals(self, metric: Metric) -> SummaryCounts:
        total = EMPTY_COUNTS
        for file in self.files.values():
            total += file.counts(metric)
        return total


class CoverageSummary:
    """Mutable per-run aggregate owned by a provider.

    Not thread-safe by itself; providers serialise calls to
    :meth:`merge_payload`.
    """

    def __init__(self) -> None:
        self._files: dict[str, FileCoverage] = {}

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, path: object) -> bool:
        return path in self._files

    def clear(self) -> None:
        self._files.clear()

    def merge_payload(self, payload: Mapping[str, Any]) -> None:
        """Merge a validated worker payload (``{"files": {path: {metric: hits}}}``)."""
        for path, data in payload.get("files", {}).items():
            self.merge_file(path, data)

    def merge_file(self, path: str, data: Mapping[str, Mapping[str, int]]) -> None:
        entry = self._files.get(path)
        if entry is None:
            entry = self._files[path] = FileCoverage(path=path)
        entry.merge(data)

    def snapshot(self) -> SummarySnapshot:
        files = {path: entry.copy() for path, entry in self._files.items()}
        return SummarySnapshot(files=MappingProxyType(files))

    def totals(self, metric: Metric) -> SummaryCounts:
        return self.snapshot().totals(metric)


__all__ = [
    "EMPTY_COUNTS",
    "CoverageSummary",
    "FileCoverage",
    "SummaryCounts",
    "SummarySnapshot",
]
