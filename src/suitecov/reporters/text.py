from __future__ import annotations

from io import StringIO
from typing import TYPE_CHECKING

from rich import box
from rich.console import Console
from rich.table import Table

from suitecov.core.model.types import Metric, WatermarkBand
from suitecov.reporters.base import display_path, format_ranges, visible_files

if TYPE_CHECKING:
    from suitecov.core.model.summary import SummaryCounts, SummarySnapshot
    from suitecov.reporters.base import ReporterContext

_BAND_STYLE = {
    WatermarkBand.LOW: "red",
    WatermarkBand.MEDIUM: "yellow",
    WatermarkBand.HIGH: "green",
}

_COLUMNS: tuple[tuple[str, Metric], ...] = (
    ("% Stmts", Metric.STATEMENTS),
    ("% Branch", Metric.BRANCHES),
    ("% Funcs", Metric.FUNCTIONS),
    ("% Lines", Metric.LINES),
)


def _style(ctx: ReporterContext, metric: Metric, counts: SummaryCounts) -> str:
    value = counts.pct
    style = _BAND_STYLE[ctx.band(metric, value)]
    return f"[{style}]{value:.2f}[/{style}]"


def _emit(table: Table, ctx: ReporterContext) -> None:
    """Print *table* to the console, or write it plain to the ``file`` option."""
    if ctx.option("file"):
        buffer = StringIO()
        Console(file=buffer, color_system=None, width=int(ctx.option("max_cols", 120))).print(table)
        ctx.output_path("coverage.txt").write_text(buffer.getvalue(), encoding="utf-8")
        return
    console = ctx.console or Console()
    console.print(table)


def format_text(snapshot: SummarySnapshot, ctx: ReporterContext) -> None:
    """Render the per-file coverage table."""
    table = Table(title="Coverage report", box=box.SIMPLE_HEAVY, header_style="bold", expand=False)
    table.add_column("File", overflow="fold")
    for title, _ in _COLUMNS:
        table.add_column(title, justify="right")
    table.add_column("Uncovered Line #s", overflow="fold")

    table.add_row(
        "All files",
        *(_style(ctx, metric, snapshot.totals(metric)) for _, metric in _COLUMNS),
        "",
    )
    table.add_section()
    for file in visible_files(snapshot, ctx):
        table.add_row(
            display_path(file.path, ctx.root),
            *(_style(ctx, metric, file.counts(metric)) for _, metric in _COLUMNS),
            format_ranges(file.uncovered_lines()),
        )
    _emit(table, ctx)


def format_text_summary(snapshot: SummarySnapshot, ctx: ReporterContext) -> None:
    """Render only the aggregate counts."""
    table = Table(title="Coverage summary", box=box.SIMPLE, show_header=False)
    table.add_column("Metric")
    table.add_column("Coverage", justify="right")
    for metric in (Metric.STATEMENTS, Metric.BRANCHES, Metric.FUNCTIONS, Metric.LINES):
        counts = snapshot.totals(metric)
        table.add_row(
            metric.value.capitalize(),
            f"{_style(ctx, metric, counts)}% ( {counts.covered}/{counts.total} )",
        )
    _emit(table, ctx)


__all__ = ["format_text", "format_text_summary"]
