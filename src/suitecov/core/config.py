"""Central configuration, constants and config-file helpers for ``suitecov``."""

from __future__ import annotations

import json
import re
import tomllib
from functools import cache
from importlib import resources
from typing import TYPE_CHECKING, Any

from suitecov._meta import logger

if TYPE_CHECKING:
    from pathlib import Path

    from suitecov.core.model.options import Thresholds

# Default logging format used by the CLI entry point.
LOG_FORMAT = "%(levelname)s: %(message)s"

# Scratch directory (inside the reports directory) holding raw worker payloads.
TMP_DIRNAME = ".tmp"

CONFIG_TABLE = ("tool", "suitecov", "coverage")

_SCHEMA_FILES: dict[str, str] = {
    "payload": "payload.schema.json",
}

_TABLE_HEADER = re.compile(r"^\s*\[([^\[\]]+)\]\s*(#.*)?$")
_INLINE_THRESHOLDS = re.compile(r"^\s*thresholds\s*=\s*\{")


@cache
def get_schema(name: str = "payload") -> dict[str, object]:
    """Load and cache a bundled JSON schema."""
    try:
        filename = _SCHEMA_FILES[name]
    except KeyError as exc:
        choices = ", ".join(sorted(_SCHEMA_FILES))
        msg = f"Unsupported schema: {name!r}. Available schemas: {choices}"
        raise ValueError(msg) from exc
    return json.loads(resources.files("suitecov.data").joinpath(filename).read_text(encoding="utf-8"))


def load_pyproject_options(pyproject: Path) -> dict[str, Any]:
    """Return the ``[tool.suitecov.coverage]`` table, or ``{}`` when absent or unreadable."""
    try:
        with pyproject.open("rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Failed to parse %s: %s", pyproject, e)
        return {}

    table: Any = data
    for key in CONFIG_TABLE:
        table = table.get(key, {}) if isinstance(table, dict) else {}
    return dict(table) if isinstance(table, dict) else {}


def write_threshold_updates(pyproject: Path, updated: Thresholds) -> list[str]:
    """Rewrite threshold values in *pyproject* in place.

    Only values already present in the coverage table are touched: flat
    ``<metric> = <number>`` lines, dotted ``thresholds.<metric>`` keys, an
    inline ``thresholds = { ... }`` table or the ``thresholds`` sub-table. The
    rest of the file is left byte-for-byte intact. Returns the metric names
    that were rewritten.
    """
    text = pyproject.read_text(encoding="utf-8")
    targets = {".".join(CONFIG_TABLE), ".".join((*CONFIG_TABLE, "thresholds"))}
    values = {metric.value: value for metric, value in updated.configured().items()}

    out: list[str] = []
    rewritten: list[str] = []
    in_target = False
    for line in text.splitlines(keepends=True):
        header = _TABLE_HEADER.match(line)
        if header:
            in_target = header.group(1).strip() in targets
            out.append(line)
            continue
        if in_target:
            if _INLINE_THRESHOLDS.match(line):
                line, names = _replace_inline(line, values)
                rewritten.extend(names)
            else:
                line, name = _replace_threshold(line, values)
                if name:
                    rewritten.append(name)
        out.append(line)

    if rewritten:
        pyproject.write_text("".join(out), encoding="utf-8")
        logger.info("updated thresholds in %s: %s", pyproject, ", ".join(rewritten))
    elif values:
        logger.warning(
            "thresholds not persisted: no matching entries under [%s] in %s",
            ".".join(CONFIG_TABLE),
            pyproject,
        )
    return rewritten


def _replace_threshold(line: str, values: dict[str, float]) -> tuple[str, str | None]:
    for name, value in values.items():
        pattern = re.compile(rf"^(\s*(?:thresholds\s*\.\s*)?{name}\s*=\s*)(\d+(?:\.\d+)?)")
        if pattern.match(line):
            return pattern.sub(lambda m: f"{m.group(1)}{_format_number(value)}", line, count=1), name
    return line, None


def _replace_inline(line: str, values: dict[str, float]) -> tuple[str, list[str]]:
    names: list[str] = []
    for name, value in values.items():
        pattern = re.compile(rf"(\b{name}\s*=\s*)(\d+(?:\.\d+)?)")
        line, count = pattern.subn(lambda m, v=value: f"{m.group(1)}{_format_number(v)}", line, count=1)
        if count:
            names.append(name)
    return line, names


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


__all__ = [
    "CONFIG_TABLE",
    "LOG_FORMAT",
    "TMP_DIRNAME",
    "get_schema",
    "load_pyproject_options",
    "write_threshold_updates",
]
