"""Main-process coordination of a coverage provider across a test run."""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
from collections.abc import Mapping
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from suitecov._meta import logger
from suitecov.core.config import load_pyproject_options
from suitecov.core.model.options import BaseCoverageOptions
from suitecov.core.resolve import resolve_options
from suitecov.errors import IngestionError, LifecycleError, ProviderInitializationError, SuitecovError
from suitecov.providers import load_provider_module
from suitecov.providers.base import ProviderContext, ReportContext

if TYPE_CHECKING:
    from collections.abc import Callable

    from suitecov.core.model.options import ResolvedCoverageOptions
    from suitecov.providers.base import (
        AfterSuiteRunMeta,
        CoverageOutcome,
        CoverageProvider,
        TransformResult,
    )


class RunState(StrEnum):
    IDLE = "idle"
    INITIALIZED = "initialized"
    COLLECTING = "collecting"
    REPORTING = "reporting"


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def _off_loop(method: Callable[..., Any], *args: Any) -> Any:
    """Await *method*, running it on a worker thread when it is synchronous."""
    if inspect.iscoroutinefunction(method):
        return await method(*args)
    return await _maybe_await(await asyncio.to_thread(method, *args))


class CoverageOrchestrator:
    """Owns the provider instance and drives it through each run.

    ``initialize -> clean -> on_after_suite_run* -> report_coverage`` makes up
    one run; watch-mode reruns repeat from ``clean``. ``teardown`` returns to
    the idle state so the orchestrator can be initialised again.
    """

    def __init__(
        self,
        options: ResolvedCoverageOptions | Mapping[str, Any] | None = None,
        *,
        root: Path | None = None,
        config_file: Path | None = None,
    ) -> None:
        self._config = options
        self.root = root or Path.cwd()
        self.config_file = config_file
        self.state = RunState.IDLE
        self._provider: CoverageProvider | None = None
        self._runs = 0
        self._ready = asyncio.Event()
        self._ready.set()

    @classmethod
    def from_pyproject(cls, pyproject: Path) -> CoverageOrchestrator:
        """Build an orchestrator from the ``[tool.suitecov.coverage]`` table of *pyproject*."""
        return cls(load_pyproject_options(pyproject), root=pyproject.parent, config_file=pyproject)

    @property
    def provider(self) -> CoverageProvider:
        if self._provider is None:
            msg = "coverage orchestrator is not initialized"
            raise LifecycleError(msg)
        return self._provider

    def _require(self, *states: RunState, action: str) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            msg = f"cannot {action} while {self.state.value} (expected {allowed})"
            raise LifecycleError(msg)

    # -- lifecycle ---------------------------------------------------------

    async def initialize(self, runner: Any = None) -> None:
        """Resolve options and create the provider.

        Raises :class:`ConfigurationError` for invalid options and
        :class:`ProviderInitializationError` when the provider cannot be
        created or initialised.
        """
        self._require(RunState.IDLE, action="initialize coverage")
        config = self._config
        options = config if isinstance(config, BaseCoverageOptions) else resolve_options(config)

        ctx = ProviderContext(options=options, root=self.root, config_file=self.config_file, runner=runner)
        try:
            module = load_provider_module(options, root=self.root)
            provider = await _maybe_await(module.get_provider())
            await _maybe_await(provider.initialize(ctx))
        except SuitecovError:
            raise
        except Exception as exc:
            msg = f"{options.provider} coverage provider failed to initialize: {exc}"
            raise ProviderInitializationError(msg) from exc

        self._provider = provider
        self._runs = 0
        self.state = RunState.INITIALIZED
        logger.info("coverage enabled with %s provider", getattr(provider, "name", options.provider))

    def resolve_options(self) -> ResolvedCoverageOptions:
        """Return the provider's resolved options; safe to call repeatedly."""
        return self.provider.resolve_options()

    async def clean(self, clean: bool | None = None) -> None:  # noqa: FBT001
        """Prepare a run, optionally discarding earlier coverage.

        An explicit *clean* wins. Otherwise the ``clean`` option applies to the
        first run and ``clean_on_rerun`` to every later one. Suite results
        arriving meanwhile wait until cleaning has finished.
        """
        self._require(RunState.INITIALIZED, RunState.REPORTING, action="clean coverage")
        options = self.resolve_options()
        if clean is None:
            clean = options.clean if self._runs == 0 else options.clean_on_rerun

        self._ready.clear()
        try:
            await _off_loop(self.provider.clean, clean)
            self.state = RunState.COLLECTING
            self._runs += 1
        finally:
            self._ready.set()
        logger.debug("coverage run %d started (clean=%s)", self._runs, clean)

    async def on_after_suite_run(self, meta: AfterSuiteRunMeta) -> None:
        await self._ready.wait()
        if self.state is not RunState.COLLECTING:
            logger.warning(
                "dropping coverage from worker %s: orchestrator is %s",
                meta.worker_id or "?",
                self.state.value,
            )
            return
        try:
            await _maybe_await(self.provider.on_after_suite_run(meta))
        except IngestionError as exc:
            logger.warning("ignoring coverage from worker %s: %s", meta.worker_id or "?", exc)

    async def report_coverage(self, context: ReportContext | None = None) -> CoverageOutcome | None:
        """Render reports and evaluate thresholds for the current run."""
        self._require(RunState.COLLECTING, RunState.REPORTING, action="report coverage")
        context = context or ReportContext()
        self.state = RunState.REPORTING
        outcome = await _off_loop(self.provider.report_coverage, context)
        if outcome is not None and outcome.fatal and not context.all_tests_run:
            outcome = dataclasses.replace(outcome, fatal=False)
        return outcome

    async def on_file_transform(
        self,
        source_code: str,
        id: str,  # noqa: A002
        plugin_ctx: Any = None,
    ) -> TransformResult | None:
        """Let the provider instrument a module; ``None`` when it has no transform hook."""
        hook = getattr(self.provider, "on_file_transform", None)
        if hook is None:
            return None
        return await _maybe_await(hook(source_code, id, plugin_ctx))

    async def abort(self) -> None:
        """Discard the coverage collected so far; no report is produced."""
        if self.state in {RunState.COLLECTING, RunState.REPORTING}:
            await _off_loop(self.provider.clean, True)  # noqa: FBT003
            self.state = RunState.INITIALIZED
            logger.info("coverage run aborted; collected coverage discarded")

    async def teardown(self) -> None:
        self._provider = None
        self._runs = 0
        self.state = RunState.IDLE


__all__ = ["CoverageOrchestrator", "RunState"]
