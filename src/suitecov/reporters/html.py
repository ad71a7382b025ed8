from __future__ import annotations

from html import escape
from typing import TYPE_CHECKING

from suitecov.core.model.types import Metric
from suitecov.reporters.base import display_path, format_ranges, visible_files

if TYPE_CHECKING:
    from suitecov.core.model.summary import SummaryCounts, SummarySnapshot
    from suitecov.reporters.base import ReporterContext

_STYLE = """
body { font-family: sans-serif; margin: 2em; }
table { border-collapse: collapse; }
th, td { padding: 4px 10px; border-bottom: 1px solid #ddd; text-align: right; }
th:first-child, td:first-child { text-align: left; }
.low { background: #fce1e5; }
.medium { background: #fff4c2; }
.high { background: #e6f5d0; }
""".strip()

_ORDER = (Metric.STATEMENTS, Metric.BRANCHES, Metric.FUNCTIONS, Metric.LINES)


def _cell(ctx: ReporterContext, metric: Metric, counts: SummaryCounts) -> str:
    band = ctx.band(metric, counts.pct)
    return f'<td class="{band.value}">{counts.pct:.2f}% ({counts.covered}/{counts.total})</td>'


def format_html(snapshot: SummarySnapshot, ctx: ReporterContext) -> None:
    """Write a single-page ``index.html`` summary."""
    title = escape(str(ctx.option("title", "Coverage report")))
    parts: list[str] = [
        "<!doctype html>",
        "<html>",
        f"<head><meta charset='utf-8'><title>{title}</title><style>{_STYLE}</style></head>",
        "<body>",
        f"<h1>{title}</h1>",
        "<table>",
        "<tr><th>File</th>"
        + "".join(f"<th>{m.value.capitalize()}</th>" for m in _ORDER)
        + "<th>Uncovered lines</th></tr>",
        "<tr><th>All files</th>"
        + "".join(_cell(ctx, m, snapshot.totals(m)) for m in _ORDER)
        + "<td></td></tr>",
    ]
    for file in visible_files(snapshot, ctx):
        parts.append(
            f"<tr><td>{escape(display_path(file.path, ctx.root))}</td>"
            + "".join(_cell(ctx, m, file.counts(m)) for m in _ORDER)
            + f"<td>{escape(format_ranges(file.uncovered_lines()))}</td></tr>"
        )
    parts.extend(("</table>", "</body>", "</html>"))
    ctx.output_path("index.html").write_text("\n".join(parts), encoding="utf-8")


__all__ = ["format_html"]
