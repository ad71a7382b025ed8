from __future__ import annotations

from typing import Any

import pytest

from suitecov.core.model.options import (
    DEFAULT_EXCLUDE,
    DEFAULT_EXTENSION,
    FIELDS_WITH_DEFAULTS,
    CustomCoverageOptions,
    InstrumentCoverageOptions,
    NativeCoverageOptions,
    ReporterSpec,
    Thresholds,
)
from suitecov.core.model.types import ProviderKind
from suitecov.core.resolve import apply_cli_overrides, normalize_key, resolve_options, resolve_reporters
from suitecov.errors import ConfigurationError


def test_defaults_for_empty_config() -> None:
    opts = resolve_options()
    assert isinstance(opts, NativeCoverageOptions)
    assert opts.provider is ProviderKind.NATIVE
    assert opts.enabled is False
    assert opts.include == ("**",)
    assert opts.exclude == DEFAULT_EXCLUDE
    assert opts.extension == DEFAULT_EXTENSION
    assert opts.clean is True
    assert opts.clean_on_rerun is True
    assert opts.reports_directory == "./coverage"
    assert [r.name for r in opts.reporter] == ["text", "html", "clover", "json"]
    assert opts.exclude_node_modules is True
    assert opts.allow_external is False
    assert opts.thresholds.is_empty()
    assert opts.watermarks.lines == (50.0, 80.0)


@pytest.mark.parametrize(
    "user",
    [
        {},
        {"enabled": True},
        {"clean": False, "include": ["src/**"]},
        {"provider": "instrument", "reportsDirectory": "out"},
        {"provider": "custom", "customProviderModule": "my_provider"},
    ],
)
def test_has_default_fields_always_present(user: dict[str, Any]) -> None:
    opts = resolve_options(user)
    for name in FIELDS_WITH_DEFAULTS:
        assert getattr(opts, name) is not None


def test_camel_case_keys_are_normalized() -> None:
    opts = resolve_options({"cleanOnRerun": False, "reportsDirectory": "out", "skipFull": True})
    assert opts.clean_on_rerun is False
    assert opts.reports_directory == "out"
    assert opts.skip_full is True


@pytest.mark.parametrize(
    ("key", "expected"),
    [
        ("cleanOnRerun", "clean_on_rerun"),
        ("clean_on_rerun", "clean_on_rerun"),
        ("customProviderModule", "custom_provider_module"),
        ("100", "check_coverage"),
    ],
)
def test_normalize_key(key: str, expected: str) -> None:
    assert normalize_key(key) == expected


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("native", NativeCoverageOptions),
        ("c8", NativeCoverageOptions),
        ("instrument", InstrumentCoverageOptions),
        ("istanbul", InstrumentCoverageOptions),
    ],
)
def test_provider_aliases(name: str, expected: type) -> None:
    assert isinstance(resolve_options({"provider": name}), expected)


def test_provider_argument_overrides_config() -> None:
    opts = resolve_options({"provider": "native"}, provider="instrument")
    assert isinstance(opts, InstrumentCoverageOptions)


def test_unknown_provider_rejected() -> None:
    with pytest.raises(ConfigurationError, match="unknown coverage provider"):
        resolve_options({"provider": "v8000"})


def test_foreign_variant_fields_are_dropped() -> None:
    opts = resolve_options({
        "provider": "instrument",
        "allowExternal": True,
        "src": ["lib"],
        "ignoreClassMethods": ["render"],
        "noSuchOption": 1,
    })
    assert isinstance(opts, InstrumentCoverageOptions)
    assert opts.ignore_class_methods == ("render",)
    assert not hasattr(opts, "allow_external")
    assert not hasattr(opts, "src")
    assert not hasattr(opts, "no_such_option")


def test_native_ignores_instrument_fields() -> None:
    opts = resolve_options({"ignoreClassMethods": ["render"], "allowExternal": True, "src": "lib"})
    assert isinstance(opts, NativeCoverageOptions)
    assert opts.allow_external is True
    assert opts.src == ("lib",)
    assert not hasattr(opts, "ignore_class_methods")


def test_custom_provider_requires_module() -> None:
    with pytest.raises(ConfigurationError, match="custom_provider_module"):
        resolve_options({"provider": "custom"})


def test_custom_provider_keeps_module_reference() -> None:
    opts = resolve_options({"provider": "custom", "customProviderModule": "./cov_provider.py"})
    assert isinstance(opts, CustomCoverageOptions)
    assert opts.custom_provider_module == "./cov_provider.py"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("text", (ReporterSpec("text"),)),
        (["text", "json"], (ReporterSpec("text"), ReporterSpec("json"))),
        ([["html"]], (ReporterSpec("html"),)),
        ([["json", {"file": "x.json"}]], (ReporterSpec("json", {"file": "x.json"}),)),
    ],
)
def test_resolve_reporters(value: object, expected: tuple[ReporterSpec, ...]) -> None:
    assert resolve_reporters(value) == expected


def test_resolve_reporters_rejects_bad_entries() -> None:
    with pytest.raises(ConfigurationError, match="invalid reporter entry"):
        resolve_reporters([42])


def test_extension_accepts_a_single_string() -> None:
    assert resolve_options({"extension": ".py"}).extension == (".py",)


@pytest.mark.parametrize(
    ("user", "pattern"),
    [
        ({"watermarks": {"lines": [90, 10]}}, "low <= high"),
        ({"watermarks": {"lines": [50, 120]}}, "within 0..100"),
        ({"lines": 101}, "within 0..100"),
        ({"thresholds": {"branches": -1}}, "within 0..100"),
        ({"clean": "yes"}, "true or false"),
        ({"include": 3}, "list of strings"),
    ],
)
def test_invalid_values_rejected(user: dict[str, Any], pattern: str) -> None:
    with pytest.raises(ConfigurationError, match=pattern):
        resolve_options(user)


def test_flat_and_nested_thresholds_merge() -> None:
    opts = resolve_options({"lines": 80, "functions": 60, "thresholds": {"lines": 90, "branches": 70}})
    assert opts.thresholds == Thresholds(lines=90.0, functions=60.0, branches=70.0)


def test_watermarks_override_only_named_metrics() -> None:
    opts = resolve_options({"watermarks": {"branches": [40, 60]}})
    assert opts.watermarks.branches == (40.0, 60.0)
    assert opts.watermarks.lines == (50.0, 80.0)


def test_hundred_shortcut_sets_every_threshold() -> None:
    opts = resolve_options({"100": True, "lines": 50})
    assert isinstance(opts, NativeCoverageOptions)
    assert opts.check_coverage is True
    assert opts.thresholds == Thresholds(lines=100.0, functions=100.0, branches=100.0, statements=100.0)


def test_resolution_is_pure() -> None:
    user = {"provider": "istanbul", "reporter": ["text"], "lines": 75}
    snapshot = dict(user)
    assert resolve_options(user) == resolve_options(user)
    assert user == snapshot


def test_cli_coverage_flag_enables_collection() -> None:
    opts = apply_cli_overrides(resolve_options(), coverage=True)
    assert opts.enabled is True


def test_cli_check_coverage_applies_to_every_variant() -> None:
    opts = apply_cli_overrides(resolve_options({"provider": "instrument"}), check_coverage=True)
    assert opts.thresholds == Thresholds(lines=100.0, functions=100.0, branches=100.0, statements=100.0)


def test_cli_thresholds_merge_over_config() -> None:
    base = resolve_options({"lines": 80, "branches": 60})
    opts = apply_cli_overrides(base, thresholds=Thresholds(branches=70.0))
    assert opts.thresholds == Thresholds(lines=80.0, branches=70.0)


def test_cli_overrides_without_changes_return_same_object() -> None:
    base = resolve_options()
    assert apply_cli_overrides(base) is base
