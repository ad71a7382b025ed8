from __future__ import annotations

import logging
from pathlib import Path

import pytest

from suitecov.core.config import get_schema, load_pyproject_options, write_threshold_updates
from suitecov.core.model.options import Thresholds


def test_payload_schema_is_bundled() -> None:
    schema = get_schema("payload")
    assert schema["required"] == ["files"]
    assert get_schema("payload") is schema


def test_unknown_schema_rejected() -> None:
    with pytest.raises(ValueError, match="Unsupported schema"):
        get_schema("report")


def test_load_pyproject_options(tmp_path: Path) -> None:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(
        "[project]\nname = 'demo'\n\n"
        "[tool.suitecov.coverage]\n"
        "provider = 'instrument'\n"
        "reporter = ['text', ['json', { file = 'final.json' }]]\n\n"
        "[tool.suitecov.coverage.thresholds]\n"
        "lines = 80\n",
        encoding="utf-8",
    )
    assert load_pyproject_options(pyproject) == {
        "provider": "instrument",
        "reporter": ["text", ["json", {"file": "final.json"}]],
        "thresholds": {"lines": 80},
    }


def test_load_pyproject_without_table(tmp_path: Path) -> None:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text("[tool.other]\nx = 1\n", encoding="utf-8")
    assert load_pyproject_options(pyproject) == {}


@pytest.mark.parametrize("content", [None, "[tool.suitecov.coverage\n"])
def test_load_pyproject_problems_warn(tmp_path: Path, caplog: pytest.LogCaptureFixture, content: str | None) -> None:
    pyproject = tmp_path / "pyproject.toml"
    if content is not None:
        pyproject.write_text(content, encoding="utf-8")
    with caplog.at_level(logging.WARNING, logger="suitecov"):
        assert load_pyproject_options(pyproject) == {}
    assert "Failed to parse" in caplog.text


def test_write_threshold_updates_rewrites_only_coverage_tables(tmp_path: Path) -> None:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(
        "[tool.other]\n"
        "lines = 10\n\n"
        "[tool.suitecov.coverage]\n"
        "lines = 50  # ratchet\n"
        "thresholdAutoUpdate = true\n\n"
        "[tool.suitecov.coverage.thresholds]\n"
        "branches = 40.5\n",
        encoding="utf-8",
    )
    updated = Thresholds(lines=91.0, branches=66.66, functions=70.0)

    assert write_threshold_updates(pyproject, updated) == ["lines", "branches"]
    assert pyproject.read_text(encoding="utf-8") == (
        "[tool.other]\n"
        "lines = 10\n\n"
        "[tool.suitecov.coverage]\n"
        "lines = 91  # ratchet\n"
        "thresholdAutoUpdate = true\n\n"
        "[tool.suitecov.coverage.thresholds]\n"
        "branches = 66.66\n"
    )


def test_write_threshold_updates_leaves_file_alone_without_matches(
    tmp_path: Path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    pyproject = tmp_path / "pyproject.toml"
    original = "[tool.suitecov.coverage]\nenabled = true\n"
    pyproject.write_text(original, encoding="utf-8")
    with caplog.at_level(logging.WARNING, logger="suitecov"):
        assert write_threshold_updates(pyproject, Thresholds(lines=80.0)) == []
    assert "thresholds not persisted" in caplog.text
    assert pyproject.read_text(encoding="utf-8") == original


@pytest.mark.parametrize(
    ("table", "expected"),
    [
        ("thresholds = { lines = 80, branches = 50.5 }\n", "thresholds = { lines = 91, branches = 66.66 }\n"),
        ("thresholds.lines = 80\nthresholds.branches = 50\n", "thresholds.lines = 91\nthresholds.branches = 66.66\n"),
    ],
)
def test_write_threshold_updates_inline_and_dotted_keys(tmp_path: Path, table: str, expected: str) -> None:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(f"[tool.suitecov.coverage]\nthresholdAutoUpdate = true\n{table}", encoding="utf-8")

    assert write_threshold_updates(pyproject, Thresholds(lines=91.0, branches=66.66)) == ["lines", "branches"]
    assert pyproject.read_text(encoding="utf-8") == f"[tool.suitecov.coverage]\nthresholdAutoUpdate = true\n{expected}"
    assert load_pyproject_options(pyproject)["thresholds"] == {"lines": 91, "branches": 66.66}
