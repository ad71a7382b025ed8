from __future__ import annotations

import json
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

import pytest

from suitecov.core.model.types import Metric
from suitecov.errors import LifecycleError
from suitecov.providers.base import AfterSuiteRunMeta, ReportContext
from suitecov.providers.native import NativeCoverageProvider

ProviderFactory = Callable[..., NativeCoverageProvider]
PayloadFactory = Callable[..., dict[str, Any]]


def test_two_suites_aggregate(tmp_path: Path, native_provider: ProviderFactory, make_payload: PayloadFactory) -> None:
    provider = native_provider()
    provider.clean(True)
    provider.on_after_suite_run(AfterSuiteRunMeta(coverage=make_payload({tmp_path / "src/a.py": (5, 10)})))
    provider.on_after_suite_run(AfterSuiteRunMeta(coverage=make_payload({tmp_path / "src/b.py": (3, 10)})))

    outcome = provider.report_coverage(ReportContext())
    assert outcome.thresholds.percentages[Metric.LINES] == 40.0
    assert outcome.thresholds.percentages[Metric.STATEMENTS] == 40.0
    assert outcome.fatal is False


@pytest.mark.parametrize("coverage", [None, {}])
def test_missing_payload_counts_as_empty(native_provider: ProviderFactory, coverage: object) -> None:
    provider = native_provider()
    provider.clean(True)
    provider.on_after_suite_run(AfterSuiteRunMeta(coverage=coverage, worker_id="w1"))
    assert provider.ingestion_errors == []
    assert provider.report_coverage().thresholds.passed


def test_malformed_payload_is_ignored_with_warning(
    native_provider: ProviderFactory,
    caplog: pytest.LogCaptureFixture,
) -> None:
    provider = native_provider()
    provider.clean(True)
    with caplog.at_level(logging.WARNING, logger="suitecov"):
        provider.on_after_suite_run(AfterSuiteRunMeta(coverage={"files": {"a.py": {"lines": {"1": -3}}}}))
    assert len(provider.ingestion_errors) == 1
    assert "malformed coverage payload" in caplog.text
    assert provider.report_coverage().thresholds.percentages[Metric.LINES] == 100.0


def test_accepted_payloads_are_persisted(
    tmp_path: Path,
    native_provider: ProviderFactory,
    make_payload: PayloadFactory,
) -> None:
    provider = native_provider()
    provider.clean(True)
    payload = make_payload({tmp_path / "src/a.py": (1, 2)})
    provider.on_after_suite_run(AfterSuiteRunMeta(coverage=payload))
    stored = tmp_path / "coverage" / ".tmp" / "coverage-1.json"
    assert json.loads(stored.read_text(encoding="utf-8")) == payload


def test_clean_true_discards_summary_and_reports(
    tmp_path: Path,
    native_provider: ProviderFactory,
    make_payload: PayloadFactory,
) -> None:
    provider = native_provider({"reporter": ["json"]})
    provider.clean(True)
    provider.on_after_suite_run(AfterSuiteRunMeta(coverage=make_payload({tmp_path / "src/a.py": (1, 2)})))
    provider.report_coverage()
    assert (tmp_path / "coverage" / "coverage-final.json").exists()

    provider.clean(True)
    assert not (tmp_path / "coverage" / "coverage-final.json").exists()
    assert (tmp_path / "coverage" / ".tmp").is_dir()
    assert provider.report_coverage().thresholds.percentages[Metric.LINES] == 100.0


def test_clean_false_keeps_accumulated_coverage(
    tmp_path: Path,
    native_provider: ProviderFactory,
    make_payload: PayloadFactory,
) -> None:
    provider = native_provider()
    provider.clean(True)
    provider.on_after_suite_run(AfterSuiteRunMeta(coverage=make_payload({tmp_path / "src/a.py": (1, 4)})))
    provider.report_coverage()

    provider.clean(False)
    provider.on_after_suite_run(AfterSuiteRunMeta(coverage=make_payload({tmp_path / "src/b.py": (3, 4)})))
    assert provider.report_coverage().thresholds.percentages[Metric.LINES] == 50.0


def test_payload_after_reporting_started_is_ignored(
    tmp_path: Path,
    native_provider: ProviderFactory,
    make_payload: PayloadFactory,
) -> None:
    provider = native_provider()
    provider.clean(True)
    provider.on_after_suite_run(AfterSuiteRunMeta(coverage=make_payload({tmp_path / "src/a.py": (2, 2)})))
    provider.report_coverage()
    provider.on_after_suite_run(AfterSuiteRunMeta(coverage=make_payload({tmp_path / "src/b.py": (0, 2)})))
    assert provider.report_coverage().thresholds.percentages[Metric.LINES] == 100.0


def test_concurrent_ingestion_is_serialized(
    tmp_path: Path,
    native_provider: ProviderFactory,
    make_payload: PayloadFactory,
) -> None:
    provider = native_provider()
    provider.clean(True)
    metas = [
        AfterSuiteRunMeta(coverage=make_payload({tmp_path / "src/shared.py": (i % 2, 2)}), worker_id=str(i))
        for i in range(40)
    ]
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(provider.on_after_suite_run, metas))

    stored = sorted((tmp_path / "coverage" / ".tmp").glob("coverage-*.json"))
    assert len(stored) == 40
    assert provider.report_coverage().thresholds.percentages[Metric.LINES] == 50.0


def test_partial_run_never_fatal(
    tmp_path: Path,
    native_provider: ProviderFactory,
    make_payload: PayloadFactory,
    caplog: pytest.LogCaptureFixture,
) -> None:
    provider = native_provider({"lines": 90})
    provider.clean(True)
    provider.on_after_suite_run(AfterSuiteRunMeta(coverage=make_payload({tmp_path / "src/a.py": (1, 2)})))
    with caplog.at_level(logging.WARNING, logger="suitecov"):
        outcome = provider.report_coverage(ReportContext(all_tests_run=False))
    assert not outcome.thresholds.passed
    assert outcome.thresholds.percentages[Metric.LINES] == 50.0
    assert outcome.fatal is False
    assert "subset of tests" in caplog.text


def test_full_run_threshold_failure_is_fatal(
    tmp_path: Path,
    native_provider: ProviderFactory,
    make_payload: PayloadFactory,
) -> None:
    provider = native_provider({"lines": 90})
    provider.clean(True)
    provider.on_after_suite_run(AfterSuiteRunMeta(coverage=make_payload({tmp_path / "src/a.py": (1, 2)})))
    outcome = provider.report_coverage(ReportContext(all_tests_run=True))
    assert outcome.fatal is True
    assert [f.metric for f in outcome.thresholds.failures] == [Metric.LINES]


def test_reporter_failure_does_not_stop_others(
    tmp_path: Path,
    native_provider: ProviderFactory,
    make_payload: PayloadFactory,
) -> None:
    provider = native_provider({"reporter": ["no-such-reporter", "json", "lcovonly"]})
    provider.clean(True)
    provider.on_after_suite_run(AfterSuiteRunMeta(coverage=make_payload({tmp_path / "src/a.py": (1, 2)})))
    outcome = provider.report_coverage()
    assert [e.reporter for e in outcome.reporter_errors] == ["no-such-reporter"]
    assert (tmp_path / "coverage" / "coverage-final.json").exists()
    assert (tmp_path / "coverage" / "lcov.info").exists()


def test_external_and_installed_files_are_filtered(
    tmp_path: Path,
    native_provider: ProviderFactory,
    make_payload: PayloadFactory,
) -> None:
    outside = tmp_path.parent / "elsewhere" / "lib.py"
    installed = tmp_path / ".env" / "lib" / "site-packages" / "dep.py"
    inside = tmp_path / "src" / "a.py"
    payload = make_payload({outside: (0, 5), installed: (0, 5), inside: (1, 1)})

    provider = native_provider()
    provider.clean(True)
    provider.on_after_suite_run(AfterSuiteRunMeta(coverage=payload))
    assert provider.report_coverage().thresholds.percentages[Metric.LINES] == 100.0

    provider = native_provider({"allowExternal": True, "excludeNodeModules": False})
    provider.clean(True)
    provider.on_after_suite_run(AfterSuiteRunMeta(coverage=payload))
    # 1 of 11 lines covered once external and installed files count.
    assert provider.report_coverage().thresholds.percentages[Metric.LINES] == pytest.approx(100 / 11)


def test_exclude_globs_apply(tmp_path: Path, native_provider: ProviderFactory, make_payload: PayloadFactory) -> None:
    payload = make_payload({tmp_path / "src/a.py": (1, 1), tmp_path / "tests/test_a.py": (0, 4)})
    provider = native_provider()
    provider.clean(True)
    provider.on_after_suite_run(AfterSuiteRunMeta(coverage=payload))
    assert provider.report_coverage().thresholds.percentages[Metric.LINES] == 100.0


def test_all_adds_untested_files(tmp_path: Path, native_provider: ProviderFactory, make_payload: PayloadFactory) -> None:
    src = tmp_path / "src"
    src.mkdir()
    (src / "used.py").write_text("a = 1\nb = 2\n", encoding="utf-8")
    (src / "unused.py").write_text("x = 1\n\ny = 2\n", encoding="utf-8")
    (src / "notes.txt").write_text("ignored\n", encoding="utf-8")

    provider = native_provider({"all": True, "extension": [".py"], "src": ["src"], "reporter": ["json-summary"]})
    provider.clean(True)
    provider.on_after_suite_run(AfterSuiteRunMeta(coverage=make_payload({src / "used.py": (2, 2)})))
    outcome = provider.report_coverage()

    assert outcome.thresholds.percentages[Metric.LINES] == 50.0
    summary = json.loads((tmp_path / "coverage" / "coverage-summary.json").read_text(encoding="utf-8"))
    unused = summary[str((src / "unused.py").resolve())]
    assert unused["lines"] == {"total": 2, "covered": 0, "skipped": 0, "pct": 0.0}


def test_auto_update_persists_thresholds(
    tmp_path: Path,
    native_provider: ProviderFactory,
    make_payload: PayloadFactory,
) -> None:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(
        "[tool.suitecov.coverage]\nthresholdAutoUpdate = true\nlines = 50\n",
        encoding="utf-8",
    )
    provider = native_provider({"thresholdAutoUpdate": True, "lines": 50}, config_file=pyproject)
    provider.clean(True)
    provider.on_after_suite_run(AfterSuiteRunMeta(coverage=make_payload({tmp_path / "src/a.py": (9, 10)})))

    outcome = provider.report_coverage(ReportContext(all_tests_run=True))
    assert outcome.thresholds.updated is not None
    assert "lines = 90\n" in pyproject.read_text(encoding="utf-8")


def test_auto_update_skipped_for_partial_runs(
    tmp_path: Path,
    native_provider: ProviderFactory,
    make_payload: PayloadFactory,
) -> None:
    pyproject = tmp_path / "pyproject.toml"
    original = "[tool.suitecov.coverage]\nlines = 50\n"
    pyproject.write_text(original, encoding="utf-8")
    provider = native_provider({"thresholdAutoUpdate": True, "lines": 50}, config_file=pyproject)
    provider.clean(True)
    provider.on_after_suite_run(AfterSuiteRunMeta(coverage=make_payload({tmp_path / "src/a.py": (9, 10)})))

    outcome = provider.report_coverage(ReportContext(all_tests_run=False))
    assert outcome.thresholds.updated is None
    assert pyproject.read_text(encoding="utf-8") == original


def test_provider_requires_initialize() -> None:
    with pytest.raises(LifecycleError, match="before initialize"):
        NativeCoverageProvider().resolve_options()
