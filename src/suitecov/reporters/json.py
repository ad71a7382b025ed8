from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from suitecov.core.model.types import Metric
from suitecov.reporters.base import metric_summary

if TYPE_CHECKING:
    from suitecov.core.model.summary import SummarySnapshot
    from suitecov.reporters.base import ReporterContext


def format_json(snapshot: SummarySnapshot, ctx: ReporterContext) -> None:
    """Write the merged hit maps of every file to ``coverage-final.json``."""
    payload: dict[str, Any] = {}
    for file in snapshot:
        payload[file.path] = {"path": file.path, **file.to_dict()}
    target = ctx.output_path("coverage-final.json")
    target.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")


def format_json_summary(snapshot: SummarySnapshot, ctx: ReporterContext) -> None:
    """Write per-file and total counts to ``coverage-summary.json``."""
    payload: dict[str, Any] = {
        "total": {metric.value: metric_summary(snapshot.totals(metric)) for metric in Metric},
    }
    for file in snapshot:
        payload[file.path] = {metric.value: metric_summary(file.counts(metric)) for metric in Metric}
    target = ctx.output_path("coverage-summary.json")
    target.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")


__all__ = ["format_json", "format_json_summary"]
