from __future__ import annotations

from typing import TYPE_CHECKING

from suitecov._meta import logger
from suitecov.errors import ReportWriteError
from suitecov.reporters.base import ReporterContext
from suitecov.reporters.registry import REPORTERS, resolve_reporter

if TYPE_CHECKING:
    from pathlib import Path

    from rich.console import Console

    from suitecov.core.model.options import ResolvedCoverageOptions
    from suitecov.core.model.summary import SummarySnapshot


def run_reporters(
    snapshot: SummarySnapshot,
    options: ResolvedCoverageOptions,
    *,
    directory: Path,
    root: Path,
    console: Console | None = None,
) -> list[ReportWriteError]:
    """Run every configured reporter in order.

    A failing reporter is logged and returned as a :class:`ReportWriteError`;
    the remaining reporters still run.
    """
    errors: list[ReportWriteError] = []
    for spec in options.reporter:
        ctx = ReporterContext(
            directory=directory,
            root=root,
            watermarks=options.watermarks,
            options=spec.options,
            skip_full=options.skip_full,
            console=console,
        )
        try:
            resolve_reporter(spec.name)(snapshot, ctx)
        except Exception as exc:  # noqa: BLE001
            error = ReportWriteError(spec.name, exc)
            logger.warning("%s", error)
            errors.append(error)
    return errors


__all__ = ["REPORTERS", "ReporterContext", "resolve_reporter", "run_reporters"]
