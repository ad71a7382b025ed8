"""Machine-readable report formats consumed by CI tooling."""

from __future__ import annotations

import time
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING

from suitecov.core.model.types import Metric
from suitecov.reporters.base import display_path, split_key

if TYPE_CHECKING:
    from suitecov.core.model.summary import FileCoverage, SummarySnapshot
    from suitecov.reporters.base import ReporterContext


def _clover_metrics(parent: ET.Element, counts: dict[Metric, tuple[int, int]], **extra: int) -> None:
    stmts, cstmts = counts[Metric.STATEMENTS]
    conds, cconds = counts[Metric.BRANCHES]
    methods, cmethods = counts[Metric.FUNCTIONS]
    attrs = {
        "statements": stmts,
        "coveredstatements": cstmts,
        "conditionals": conds,
        "coveredconditionals": cconds,
        "methods": methods,
        "coveredmethods": cmethods,
        "elements": stmts + conds + methods,
        "coveredelements": cstmts + cconds + cmethods,
        "complexity": 0,
        "loc": stmts,
        "ncloc": stmts,
        **extra,
    }
    ET.SubElement(parent, "metrics", {k: str(v) for k, v in attrs.items()})


def _pairs(file: FileCoverage) -> dict[Metric, tuple[int, int]]:
    out: dict[Metric, tuple[int, int]] = {}
    for metric in Metric:
        counts = file.counts(metric)
        out[metric] = (counts.total, counts.covered)
    return out


def format_clover(snapshot: SummarySnapshot, ctx: ReporterContext) -> None:
    """Write ``clover.xml``."""
    stamp = str(int(time.time() * 1000))
    root = ET.Element("coverage", {"generated": stamp, "clover": "3.2.0"})
    name = str(ctx.option("project_root", "All files"))
    project = ET.SubElement(root, "project", {"timestamp": stamp, "name": name})
    totals = {m: (snapshot.totals(m).total, snapshot.totals(m).covered) for m in Metric}
    _clover_metrics(project, totals, files=len(snapshot), packages=1, classes=len(snapshot))

    for file in snapshot:
        label = display_path(file.path, ctx.root)
        node = ET.SubElement(project, "file", {"name": label.rsplit("/", 1)[-1], "path": file.path})
        _clover_metrics(node, _pairs(file))
        for key, hits in sorted(file.functions.items(), key=lambda kv: split_key(kv[0])[1]):
            _, line = split_key(key)
            if line:
                ET.SubElement(node, "line", {"num": str(line), "count": str(hits), "type": "method"})
        for line, hits in sorted(file.lines.items(), key=lambda kv: int(kv[0])):
            ET.SubElement(node, "line", {"num": line, "count": str(hits), "type": "stmt"})

    ET.indent(root)
    target = ctx.output_path("clover.xml")
    ET.ElementTree(root).write(target, encoding="utf-8", xml_declaration=True)


def format_lcovonly(snapshot: SummarySnapshot, ctx: ReporterContext) -> None:
    """Write ``lcov.info`` tracefile records."""
    out: list[str] = []
    for file in snapshot:
        out.extend(("TN:", f"SF:{file.path}"))
        for key, hits in file.functions.items():
            name, line = split_key(key)
            out.extend((f"FN:{line},{name}", f"FNDA:{hits},{name}"))
        fn = file.counts(Metric.FUNCTIONS)
        out.extend((f"FNF:{fn.total}", f"FNH:{fn.covered}"))
        for line, hits in sorted(file.lines.items(), key=lambda kv: int(kv[0])):
            out.append(f"DA:{line},{hits}")
        ln = file.counts(Metric.LINES)
        out.extend((f"LF:{ln.total}", f"LH:{ln.covered}"))
        for key, hits in file.branches.items():
            line, _, idx = key.partition(":")
            out.append(f"BRDA:{line},0,{idx or 0},{hits if hits else '-'}")
        br = file.counts(Metric.BRANCHES)
        out.extend((f"BRF:{br.total}", f"BRH:{br.covered}", "end_of_record"))
    ctx.output_path("lcov.info").write_text("\n".join(out) + "\n", encoding="utf-8")


def format_none(snapshot: SummarySnapshot, ctx: ReporterContext) -> None:  # noqa: ARG001
    return None


__all__ = ["format_clover", "format_lcovonly", "format_none"]
