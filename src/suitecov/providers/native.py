"""Tracer-backed coverage provider.

Workers measure with coverage.py in branch mode. Each snapshot reports the
executed statement lines of every file, plus function and ``if`` arm counters
derived from the executed lines and arcs. Hit counts are 0 or 1.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import coverage
from coverage.exceptions import CoverageException

from suitecov._meta import logger
from suitecov.core.model.options import NativeCoverageOptions
from suitecov.core.model.summary import FileCoverage
from suitecov.errors import ConfigurationError
from suitecov.providers._instrumenter import analyze, code_map
from suitecov.providers.base import BaseCoverageProvider

if TYPE_CHECKING:
    from collections.abc import Sequence

# Path segments holding installed third-party code.
INSTALLED_DIRS = frozenset({"node_modules", "site-packages", "dist-packages"})

_cov: coverage.Coverage | None = None


class NativeCoverageProvider(BaseCoverageProvider):
    name = "native"

    @property
    def native_options(self) -> NativeCoverageOptions:
        opts = self.ctx.options
        if not isinstance(opts, NativeCoverageOptions):
            msg = f"native provider received {opts.provider} options"
            raise ConfigurationError(msg)
        return opts

    def accepts(self, path: str) -> bool:
        opts = self.native_options
        if opts.exclude_node_modules and INSTALLED_DIRS.intersection(Path(path).parts):
            return False
        path_filter = self.path_filter()
        if not opts.allow_external and not path_filter.is_inside(path):
            return False
        return path_filter.allow(path)

    def untested_roots(self) -> Sequence[Path]:
        src = self.native_options.src
        if not src:
            return [self.ctx.root]
        return [p if p.is_absolute() else self.ctx.root / p for p in map(Path, src)]

    def untested_file(self, path: Path) -> FileCoverage | None:
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("cannot read untested file %s: %s", path, exc)
            return None
        key = str(path.resolve())
        if path.suffix == ".py":
            try:
                entry = analyze(source, key)
            except SyntaxError as exc:
                logger.warning("cannot parse untested file %s: %s", path, exc)
                return None
            return FileCoverage(
                path=key,
                statements=entry.statements,
                functions=entry.functions,
                branches=entry.branches,
                lines=entry.lines,
            )
        lines = {str(n): 0 for n, text in enumerate(source.splitlines(), start=1) if text.strip()}
        return FileCoverage(path=key, statements=dict(lines), lines=lines)


def get_provider() -> NativeCoverageProvider:
    return NativeCoverageProvider()


# --------------------------------------------------------------------------- #
# Worker-side hooks                                                           #
# --------------------------------------------------------------------------- #


def start_coverage() -> None:
    """Reset and start the tracer for this worker."""
    global _cov  # noqa: PLW0603
    if _cov is None:
        _cov = coverage.Coverage(data_file=None, config_file=False, branch=True)
    _cov.erase()
    _cov.start()


def _structure_hits(
    filename: str,
    executed: set[int],
    arcs: Sequence[tuple[int, int]],
) -> dict[str, dict[str, int]]:
    """Function and ``if`` arm counters for *filename*, empty when it cannot be parsed."""
    try:
        layout = code_map(Path(filename).read_text(encoding="utf-8"), filename)
    except (OSError, UnicodeDecodeError, SyntaxError, ValueError) as exc:
        logger.debug("no function or branch data for %s: %s", filename, exc)
        return {}

    functions = {
        key: int(any(first <= n <= last for n in executed)) for key, (first, last) in layout.functions.items()
    }
    exits: dict[int, set[int]] = {}
    for src, dst in arcs:
        exits.setdefault(src, set()).add(dst)
    branches: dict[str, int] = {}
    for line, body in sorted(layout.branches.items()):
        targets = exits.get(line, set())
        branches[f"{line}:0"] = int(body in targets)
        branches[f"{line}:1"] = int(bool(targets - {body}))
    return {"functions": functions, "branches": branches}


def take_coverage() -> dict[str, Any] | None:
    """Snapshot executed code without resetting the tracer."""
    if _cov is None:
        return None
    data = _cov.get_data()
    files: dict[str, Any] = {}
    for filename in sorted(data.measured_files()):
        try:
            _, statements, _, missing, _ = _cov.analysis2(filename)
        except (CoverageException, OSError) as exc:
            logger.debug("skipping %s: %s", filename, exc)
            continue
        missed = set(missing)
        lines = {str(n): 0 if n in missed else 1 for n in statements}
        executed = set(data.lines(filename) or ())
        structure = _structure_hits(filename, executed, data.arcs(filename) or [])
        files[filename] = {"statements": dict(lines), "lines": lines, **structure}
    return {"files": files}


def stop_coverage() -> None:
    global _cov  # noqa: PLW0603
    if _cov is not None:
        _cov.stop()
        _cov = None


__all__ = [
    "INSTALLED_DIRS",
    "NativeCoverageProvider",
    "get_provider",
    "start_coverage",
    "stop_coverage",
    "take_coverage",
]
