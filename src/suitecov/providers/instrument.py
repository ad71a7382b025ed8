"""Source-instrumentation coverage provider.

Python modules are rewritten before they run so that every statement,
function and ``if`` arm bumps a counter in :mod:`suitecov.providers._runtime`.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

from suitecov._meta import logger
from suitecov.core.model.options import InstrumentCoverageOptions
from suitecov.errors import ConfigurationError
from suitecov.providers import _runtime
from suitecov.providers._instrumenter import analyze, instrument
from suitecov.providers.base import BaseCoverageProvider, TransformResult

if TYPE_CHECKING:
    from suitecov.core.model.summary import FileCoverage


class InstrumentCoverageProvider(BaseCoverageProvider):
    name = "instrument"

    @property
    def instrument_options(self) -> InstrumentCoverageOptions:
        opts = self.ctx.options
        if not isinstance(opts, InstrumentCoverageOptions):
            msg = f"instrument provider received {opts.provider} options"
            raise ConfigurationError(msg)
        return opts

    def on_file_transform(self, source_code: str, id: str, plugin_ctx: Any = None) -> TransformResult:  # noqa: A002, ARG002
        path = id.split("?", 1)[0]
        # Only Python source can be rewritten; ``extension`` scopes the untested-file scan.
        if Path(path).suffix != ".py" or not self.accepts(path):
            return TransformResult(code=source_code)
        try:
            code, _ = instrument(
                source_code,
                path,
                ignore_class_methods=self.instrument_options.ignore_class_methods,
            )
        except SyntaxError as exc:
            logger.warning("not instrumenting %s: %s", path, exc)
            return TransformResult(code=source_code)
        return TransformResult(code=code)

    def untested_file(self, path: Path) -> FileCoverage | None:
        if path.suffix != ".py":
            return None
        try:
            source = path.read_text(encoding="utf-8")
            return analyze(
                source,
                str(path.resolve()),
                ignore_class_methods=self.instrument_options.ignore_class_methods,
            )
        except (OSError, UnicodeDecodeError, SyntaxError) as exc:
            logger.warning("cannot analyse untested file %s: %s", path, exc)
            return None


def get_provider() -> InstrumentCoverageProvider:
    return InstrumentCoverageProvider()


# --------------------------------------------------------------------------- #
# Worker-side hooks                                                           #
# --------------------------------------------------------------------------- #


def start_coverage() -> None:
    _runtime.reset()


def take_coverage() -> dict[str, Any]:
    return _runtime.snapshot()


def stop_coverage() -> None:
    _runtime.clear()


__all__ = [
    "InstrumentCoverageProvider",
    "get_provider",
    "start_coverage",
    "stop_coverage",
    "take_coverage",
]
