from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from suitecov.core.model.summary import FileCoverage, SummarySnapshot
from suitecov.core.resolve import resolve_options
from suitecov.providers import _runtime
from suitecov.providers.base import ProviderContext
from suitecov.providers.native import NativeCoverageProvider

HitsSpec = Mapping[str, Mapping[str, int]]


def line_hits(covered: int, total: int) -> dict[str, int]:
    """Return a line hit map with *covered* of *total* lines executed."""
    return {str(n): (1 if n <= covered else 0) for n in range(1, total + 1)}


def file_coverage(path: str, covered: int, total: int) -> FileCoverage:
    hits = line_hits(covered, total)
    return FileCoverage(path=path, statements=dict(hits), lines=dict(hits))


def snapshot_of(*files: FileCoverage) -> SummarySnapshot:
    return SummarySnapshot(files={f.path: f for f in files})


@pytest.fixture
def cli_runner() -> CliRunner:
    """Return a Click CLI runner for invoking the command-line interface."""
    return CliRunner()


@pytest.fixture
def make_payload() -> Callable[..., dict[str, Any]]:
    """Build a worker payload with ``covered`` of ``total`` statement lines hit per file."""

    def build(files: Mapping[Path | str, tuple[int, int]]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for path, (covered, total) in files.items():
            hits = line_hits(covered, total)
            out[str(path)] = {"statements": dict(hits), "lines": dict(hits)}
        return {"files": out}

    return build


@pytest.fixture
def native_provider(tmp_path: Path) -> Callable[..., NativeCoverageProvider]:
    """Return a factory for initialized native providers rooted at ``tmp_path``."""

    def create(config: Mapping[str, Any] | None = None, *, config_file: Path | None = None) -> NativeCoverageProvider:
        options = resolve_options({"reporter": ["none"], **(config or {})})
        provider = NativeCoverageProvider()
        provider.initialize(ProviderContext(options=options, root=tmp_path, config_file=config_file))
        return provider

    return create


@pytest.fixture(autouse=True)
def _isolated_runtime() -> None:
    _runtime.clear()
