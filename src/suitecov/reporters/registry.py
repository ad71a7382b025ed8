"""Reporter registry for suitecov report formats."""

from __future__ import annotations

import difflib
from typing import TYPE_CHECKING

from suitecov._meta import logger
from suitecov.reporters.files import format_clover, format_lcovonly, format_none
from suitecov.reporters.html import format_html
from suitecov.reporters.json import format_json, format_json_summary
from suitecov.reporters.text import format_text, format_text_summary

if TYPE_CHECKING:
    from suitecov.reporters.base import Reporter

REPORTERS: dict[str, Reporter] = {
    "clover": format_clover,
    "html": format_html,
    "json": format_json,
    "json-summary": format_json_summary,
    "lcovonly": format_lcovonly,
    "none": format_none,
    "text": format_text,
    "text-summary": format_text_summary,
}


def resolve_reporter(name: str) -> Reporter:
    """Return the reporter registered under *name*."""
    try:
        reporter = REPORTERS[name]
    except KeyError as err:
        choices = sorted(REPORTERS)
        suggestion = difflib.get_close_matches(name, choices, n=1)
        hint = f". Did you mean {suggestion[0]!r}?" if suggestion else ""
        msg = f"{name!r} is not one of {', '.join(choices)}{hint}"
        raise ValueError(msg) from err

    logger.debug("selected reporter %s", name)
    return reporter


__all__ = ["REPORTERS", "resolve_reporter"]
