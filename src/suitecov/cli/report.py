from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

from suitecov._meta import logger
from suitecov.cli._shared import ConfigOption, fail, load_options, locate_config, project_root
from suitecov.cli.exit_codes import EXIT_CONFIG, EXIT_DATAERR, EXIT_NOINPUT, EXIT_OK, EXIT_THRESHOLD
from suitecov.core.config import TMP_DIRNAME
from suitecov.errors import ConfigurationError, ProviderInitializationError
from suitecov.orchestrator import CoverageOrchestrator
from suitecov.providers.base import AfterSuiteRunMeta, ReportContext

if TYPE_CHECKING:
    from collections.abc import Sequence

    from suitecov.providers.base import CoverageOutcome

_BOOL_FALSE = False


def _discover_payloads(reports_directory: Path) -> list[Path]:
    tmp = reports_directory / TMP_DIRNAME
    if not tmp.is_dir():
        return []
    return sorted(tmp.glob("coverage-*.json"), key=lambda p: (len(p.name), p.name))


def _read_payloads(paths: Sequence[Path], *, all_tests_run: bool) -> list[AfterSuiteRunMeta]:
    metas: list[AfterSuiteRunMeta] = []
    for path in paths:
        try:
            coverage = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise fail(f"cannot read {path}: {exc}", EXIT_NOINPUT) from exc
        except ValueError as exc:
            raise fail(f"{path} is not valid JSON: {exc}", EXIT_DATAERR) from exc
        metas.append(AfterSuiteRunMeta(coverage=coverage, worker_id=path.name, all_tests_run=all_tests_run))
    return metas


async def _run_report(
    orchestrator: CoverageOrchestrator,
    metas: Sequence[AfterSuiteRunMeta],
    context: ReportContext,
) -> CoverageOutcome | None:
    await orchestrator.initialize()
    try:
        await orchestrator.clean()
        for meta in metas:
            await orchestrator.on_after_suite_run(meta)
        return await orchestrator.report_coverage(context)
    finally:
        await orchestrator.teardown()


def report_cmd(
    payloads: Annotated[
        list[Path] | None,
        typer.Argument(help="Coverage payload JSON file(s). Defaults to the collected worker payloads."),
    ] = None,
    config: ConfigOption = None,
    partial: Annotated[
        bool,
        typer.Option("--partial", help="Only a subset of tests ran; threshold failures are not fatal."),
    ] = _BOOL_FALSE,
    check_coverage: Annotated[
        bool,
        typer.Option("--check-coverage", help="Require 100% for every metric."),
    ] = _BOOL_FALSE,
    threshold: Annotated[
        str | None,
        typer.Option("--threshold", help="Threshold overrides, e.g. 'lines=80,branches=70'."),
    ] = None,
) -> None:
    """Aggregate worker payloads, write the configured reports and check thresholds."""
    config_file = locate_config(config)
    root = project_root(config_file)
    options = load_options(config_file, check_coverage=check_coverage, threshold=threshold)

    reports_directory = Path(options.reports_directory)
    if not reports_directory.is_absolute():
        reports_directory = root / reports_directory
    paths = list(payloads) if payloads else _discover_payloads(reports_directory)
    if not paths:
        raise fail(f"no coverage payloads found in {reports_directory / TMP_DIRNAME}", EXIT_NOINPUT)

    # Payloads are read before cleaning, which may remove the directory holding them.
    metas = _read_payloads(paths, all_tests_run=not partial)
    logger.debug("aggregating %d payload(s)", len(metas))

    orchestrator = CoverageOrchestrator(options, root=root, config_file=config_file)
    try:
        outcome = asyncio.run(_run_report(orchestrator, metas, ReportContext(all_tests_run=not partial)))
    except (ConfigurationError, ProviderInitializationError) as exc:
        raise fail(str(exc), EXIT_CONFIG) from exc

    if outcome is None:
        raise typer.Exit(code=EXIT_OK)
    for error in outcome.reporter_errors:
        typer.echo(f"WARNING: {error}", err=True)
    if outcome.fatal:
        for failure in outcome.thresholds.failures:
            scope = f" in {failure.file}" if failure.file else ""
            typer.echo(
                (
                    "Threshold failed: "
                    f"{failure.metric.value} {failure.comparison} {failure.required:g}"
                    f" (actual {failure.actual:.2f}){scope}"
                ),
                err=True,
            )
        raise typer.Exit(code=EXIT_THRESHOLD)
    raise typer.Exit(code=EXIT_OK)


def register(app: typer.Typer) -> None:
    app.command("report")(report_cmd)


__all__ = ["register"]
