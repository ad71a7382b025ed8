"""Worker-side lifecycle around a provider module's collection hooks."""

from __future__ import annotations

import asyncio
import copy
import inspect
import os
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from suitecov._meta import logger
from suitecov.providers import load_provider_module
from suitecov.providers.base import AfterSuiteRunMeta

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from suitecov.core.model.options import ResolvedCoverageOptions
    from suitecov.providers.base import CoverageProviderModule


def _call_hook(module: CoverageProviderModule, name: str) -> Any:
    hook = getattr(module, name, None)
    if not callable(hook):
        return None
    result = hook()
    if inspect.iscoroutine(result):
        result = asyncio.run(result)
    return result


def _subtract(current: Any, previous: Any) -> Any:
    """Per-key hit difference; keys with no new hits stay at zero."""
    if isinstance(current, Mapping):
        earlier = previous if isinstance(previous, Mapping) else {}
        return {key: _subtract(value, earlier.get(key)) for key, value in current.items()}
    if type(current) is int and type(previous) is int and current >= previous:
        return current - previous
    return current


class WorkerCoverageHooks:
    """Start, snapshot and stop coverage collection inside one worker.

    Call :meth:`start` once, :meth:`take` after each suite and :meth:`stop`
    when the worker exits. Hooks the provider module does not define are
    skipped.
    """

    def __init__(
        self,
        options: ResolvedCoverageOptions,
        *,
        worker_id: str | None = None,
        root: Path | None = None,
        module: CoverageProviderModule | None = None,
    ) -> None:
        self.options = options
        self.worker_id = worker_id or str(os.getpid())
        self.module = module if module is not None else load_provider_module(options, root=root)
        self._started = False
        self._last_files: Mapping[str, Any] = {}

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        if self._started:
            return
        _call_hook(self.module, "start_coverage")
        self._last_files = {}
        self._started = True
        logger.debug("worker %s started coverage collection", self.worker_id)

    def take(self, test_files: Sequence[str] = (), *, all_tests_run: bool = True) -> AfterSuiteRunMeta:
        """Snapshot coverage for the suite that just finished.

        Counters are not reset. The payload carries only the hits added since
        the previous take, so summing every payload of a worker counts each
        hit once.
        """
        coverage = _call_hook(self.module, "take_coverage")
        if isinstance(coverage, Mapping) and isinstance(coverage.get("files"), Mapping):
            files = coverage["files"]
            coverage = {**coverage, "files": _subtract(files, self._last_files)}
            self._last_files = copy.deepcopy(files)
        return AfterSuiteRunMeta(
            coverage=coverage,
            worker_id=self.worker_id,
            test_files=tuple(test_files),
            all_tests_run=all_tests_run,
        )

    def stop(self) -> None:
        if not self._started:
            return
        _call_hook(self.module, "stop_coverage")
        self._last_files = {}
        self._started = False
        logger.debug("worker %s stopped coverage collection", self.worker_id)

    def __enter__(self) -> WorkerCoverageHooks:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


__all__ = ["WorkerCoverageHooks"]
