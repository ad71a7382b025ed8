"""Coverage provider contract and the default provider implementation."""

from __future__ import annotations

import json
import shutil
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from jsonschema import ValidationError, validate

from suitecov._meta import logger
from suitecov.core.config import TMP_DIRNAME, get_schema, write_threshold_updates
from suitecov.core.model.summary import CoverageSummary, SummarySnapshot
from suitecov.core.model.thresholds import ThresholdsResult, evaluate
from suitecov.core.path_filter import PathFilter
from suitecov.errors import IngestionError, LifecycleError
from suitecov.reporters import run_reporters

if TYPE_CHECKING:
    from collections.abc import Awaitable, Iterator, Sequence

    from suitecov.core.model.options import ResolvedCoverageOptions
    from suitecov.core.model.summary import FileCoverage
    from suitecov.errors import ReportWriteError


# --------------------------------------------------------------------------- #
# Values exchanged with providers                                             #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class AfterSuiteRunMeta:
    """A finished suite's coverage payload and where it came from.

    ``coverage`` is plain JSON-compatible data (or ``None`` when the worker
    collected nothing).
    """

    coverage: Any = None
    worker_id: str | None = None
    test_files: tuple[str, ...] = ()
    all_tests_run: bool = True


@dataclass(frozen=True, slots=True)
class ReportContext:
    # False when only a filtered subset of the tests ran.
    all_tests_run: bool = True


@dataclass(frozen=True, slots=True)
class TransformResult:
    code: str
    map: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class ProviderContext:
    """What the orchestrator hands to :meth:`CoverageProvider.initialize`."""

    options: ResolvedCoverageOptions
    root: Path = field(default_factory=Path.cwd)
    config_file: Path | None = None
    # Opaque handle to the surrounding test runner, if any.
    runner: Any = None


@dataclass(frozen=True, slots=True)
class CoverageOutcome:
    """Result of :meth:`CoverageProvider.report_coverage`.

    ``fatal`` is the only signal a runner should turn into a failing exit
    code; it is never set for partial runs.
    """

    thresholds: ThresholdsResult
    reporter_errors: list[ReportWriteError] = field(default_factory=list)
    fatal: bool = False


# --------------------------------------------------------------------------- #
# Contracts                                                                   #
# --------------------------------------------------------------------------- #


class CoverageProvider(Protocol):
    """Operations the orchestrator drives. Any method may return an awaitable."""

    name: str

    def initialize(self, ctx: ProviderContext) -> Awaitable[None] | None: ...

    def resolve_options(self) -> ResolvedCoverageOptions: ...

    def clean(self, clean: bool = True) -> Awaitable[None] | None: ...  # noqa: FBT001, FBT002

    def on_after_suite_run(self, meta: AfterSuiteRunMeta) -> Awaitable[None] | None: ...

    def report_coverage(
        self, context: ReportContext | None = None
    ) -> Awaitable[CoverageOutcome | None] | CoverageOutcome | None: ...


@runtime_checkable
class SupportsFileTransform(Protocol):
    """Optional provider hook for instrumenting source before it runs."""

    def on_file_transform(
        self, source_code: str, id: str, plugin_ctx: Any = None  # noqa: A002
    ) -> Awaitable[TransformResult | None] | TransformResult | None: ...


class CoverageProviderModule(Protocol):
    """A provider module: a factory plus optional worker-side hooks.

    ``start_coverage``, ``take_coverage`` and ``stop_coverage`` are looked up
    with ``getattr`` and may be missing.
    """

    def get_provider(self) -> CoverageProvider | Awaitable[CoverageProvider]: ...


# --------------------------------------------------------------------------- #
# Default implementation                                                      #
# --------------------------------------------------------------------------- #


class BaseCoverageProvider:
    """Summary ownership, ingestion, cleaning and reporting shared by the bundled providers.

    Subclasses narrow :meth:`accepts` and implement :meth:`untested_file`
    when they can describe files no suite loaded.
    """

    name = "base"

    def __init__(self) -> None:
        self._ctx: ProviderContext | None = None
        self._summary = CoverageSummary()
        self._lock = threading.Lock()
        self._frozen = False
        self._payloads = 0
        self.ingestion_errors: list[IngestionError] = []

    # -- lifecycle ---------------------------------------------------------

    def initialize(self, ctx: ProviderContext) -> None:
        self._ctx = ctx
        logger.debug("initialized %s coverage provider (root=%s)", self.name, ctx.root)

    @property
    def ctx(self) -> ProviderContext:
        if self._ctx is None:
            msg = f"{self.name} coverage provider used before initialize()"
            raise LifecycleError(msg)
        return self._ctx

    def resolve_options(self) -> ResolvedCoverageOptions:
        return self.ctx.options

    @property
    def reports_directory(self) -> Path:
        path = Path(self.ctx.options.reports_directory)
        return path if path.is_absolute() else self.ctx.root / path

    @property
    def temp_directory(self) -> Path:
        return self.reports_directory / TMP_DIRNAME

    def clean(self, clean: bool = True) -> None:  # noqa: FBT001, FBT002
        with self._lock:
            if clean:
                self._summary.clear()
                self._payloads = 0
                self.ingestion_errors.clear()
                if self.reports_directory.exists():
                    shutil.rmtree(self.reports_directory)
            self._frozen = False
            self.temp_directory.mkdir(parents=True, exist_ok=True)

    # -- ingestion ---------------------------------------------------------

    def parse_payload(self, payload: Any) -> dict[str, Any]:
        """Validate a worker payload, raising :class:`IngestionError` when malformed."""
        try:
            validate(payload, get_schema("payload"))
        except ValidationError as exc:
            msg = f"malformed coverage payload: {exc.message}"
            raise IngestionError(msg) from exc
        return payload

    def on_after_suite_run(self, meta: AfterSuiteRunMeta) -> None:
        if not meta.coverage:
            logger.debug("no coverage from worker %s; counting suite as empty", meta.worker_id)
            return
        try:
            payload = self.parse_payload(meta.coverage)
        except IngestionError as exc:
            logger.warning("ignoring coverage from worker %s: %s", meta.worker_id or "?", exc)
            with self._lock:
                self.ingestion_errors.append(exc)
            return

        with self._lock:
            if self._frozen:
                logger.warning("coverage from worker %s arrived after reporting started", meta.worker_id)
                return
            self._summary.merge_payload(payload)
            self._payloads += 1
            self._write_temp(payload, self._payloads)

    def _write_temp(self, payload: dict[str, Any], index: int) -> None:
        self.temp_directory.mkdir(parents=True, exist_ok=True)
        target = self.temp_directory / f"coverage-{index}.json"
        target.write_text(json.dumps(payload, sort_keys=True), encoding="utf-8")

    # -- reporting ---------------------------------------------------------

    def path_filter(self) -> PathFilter:
        opts = self.ctx.options
        return PathFilter(opts.include, opts.exclude, base=self.ctx.root)

    def accepts(self, path: str) -> bool:
        return self.path_filter().allow(path)

    def untested_roots(self) -> Sequence[Path]:
        return [self.ctx.root]

    def untested_file(self, path: Path) -> FileCoverage | None:
        """Describe a file no suite loaded, or ``None`` to leave it out."""
        return None

    def _iter_untested(self, known: set[str]) -> Iterator[FileCoverage]:
        extensions = set(self.ctx.options.extension)
        for root in self.untested_roots():
            for path in sorted(root.rglob("*")):
                if not path.is_file() or path.suffix not in extensions:
                    continue
                key = str(path.resolve())
                if key in known or not self.accepts(key):
                    continue
                known.add(key)
                entry = self.untested_file(path)
                if entry is not None:
                    yield entry

    def prepare_snapshot(self, snapshot: SummarySnapshot) -> SummarySnapshot:
        files = {path: entry for path, entry in snapshot.files.items() if self.accepts(path)}
        if self.ctx.options.all:
            known = {str(Path(p).resolve()) for p in snapshot.files}
            for entry in self._iter_untested(known):
                files[entry.path] = entry
        return SummarySnapshot(files=files)

    def report_coverage(self, context: ReportContext | None = None) -> CoverageOutcome:
        context = context or ReportContext()
        opts = self.ctx.options
        with self._lock:
            self._frozen = True
            snapshot = self._summary.snapshot()
        snapshot = self.prepare_snapshot(snapshot)

        errors = run_reporters(snapshot, opts, directory=self.reports_directory, root=self.ctx.root)

        result = evaluate(
            snapshot,
            opts.thresholds,
            per_file=opts.per_file,
            watermarks=opts.watermarks,
            auto_update=opts.threshold_auto_update and context.all_tests_run,
        )
        for failure in result.failures:
            scope = f"file {failure.file}" if failure.file else "global"
            logger.error(
                "Coverage for %s (%.2f%%) does not meet %s threshold (%g%%)",
                failure.metric.value,
                failure.actual,
                scope,
                failure.required,
            )
        if not result.passed and not context.all_tests_run:
            logger.warning("coverage thresholds not met, but only a subset of tests ran; not failing")

        if result.updated is not None and self.ctx.config_file is not None:
            write_threshold_updates(self.ctx.config_file, result.updated)

        return CoverageOutcome(
            thresholds=result,
            reporter_errors=errors,
            fatal=not result.passed and context.all_tests_run,
        )


__all__ = [
    "AfterSuiteRunMeta",
    "BaseCoverageProvider",
    "CoverageOutcome",
    "CoverageProvider",
    "CoverageProviderModule",
    "ProviderContext",
    "ReportContext",
    "SupportsFileTransform",
    "TransformResult",
]
