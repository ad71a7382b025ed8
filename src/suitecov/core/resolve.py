"""Merge user coverage configuration with provider defaults.

Everything here is pure: no file or environment access. Keys may be given in
snake_case or in the camelCase spelling used by JavaScript-style configs.
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Mapping, Sequence
from typing import Any, assert_never

from suitecov._meta import logger
from suitecov.core.model.options import (
    BASE_FIELDS,
    VARIANT_FIELDS,
    CustomCoverageOptions,
    InstrumentCoverageOptions,
    NativeCoverageOptions,
    ReporterSpec,
    ResolvedCoverageOptions,
    Thresholds,
    Watermarks,
)
from suitecov.core.model.types import FULL_COVERAGE, Metric, ProviderKind
from suitecov.errors import ConfigurationError

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

_PROVIDER_ALIASES: dict[str, ProviderKind] = {
    "native": ProviderKind.NATIVE,
    "c8": ProviderKind.NATIVE,
    "instrument": ProviderKind.INSTRUMENT,
    "istanbul": ProviderKind.INSTRUMENT,
    "custom": ProviderKind.CUSTOM,
}

_KEY_ALIASES: dict[str, str] = {
    "100": "check_coverage",
}

_BOOL_FIELDS = frozenset({
    "enabled",
    "all",
    "clean",
    "clean_on_rerun",
    "skip_full",
    "per_file",
    "threshold_auto_update",
    "allow_external",
    "exclude_node_modules",
    "check_coverage",
})

_LIST_FIELDS = frozenset({"include", "exclude", "extension", "src", "ignore_class_methods"})

_THRESHOLD_KEYS = frozenset(m.value for m in Metric)


def normalize_key(key: str) -> str:
    """Return the snake_case option name for *key*."""
    key = _KEY_ALIASES.get(key, key)
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def resolve_provider(value: object) -> ProviderKind:
    if value is None:
        return ProviderKind.NATIVE
    if isinstance(value, ProviderKind):
        return value
    kind = _PROVIDER_ALIASES.get(str(value).strip().lower())
    if kind is None:
        choices = ", ".join(sorted(_PROVIDER_ALIASES))
        msg = f"unknown coverage provider {value!r}; expected one of {choices}"
        raise ConfigurationError(msg)
    return kind


def resolve_options(
    user: Mapping[str, Any] | None = None,
    provider: ProviderKind | str | None = None,
) -> ResolvedCoverageOptions:
    """Return fully-defaulted options for the selected provider variant.

    *provider* overrides the ``provider`` key of *user*. Keys that belong to
    another variant, or to no variant at all, are dropped.
    """
    raw = {normalize_key(str(k)): v for k, v in (user or {}).items()}
    kind = resolve_provider(provider if provider is not None else raw.pop("provider", None))
    raw.pop("provider", None)

    allowed = BASE_FIELDS | VARIANT_FIELDS[kind]
    values: dict[str, Any] = {}
    flat_thresholds: dict[str, Any] = {}
    for key, value in raw.items():
        if key in _THRESHOLD_KEYS:
            flat_thresholds[key] = value
        elif key in allowed:
            values[key] = value
        else:
            logger.debug("dropping coverage option %r (not valid for provider %s)", key, kind.value)

    fields: dict[str, Any] = {}
    for key, value in values.items():
        if value is None:
            continue
        if key in _BOOL_FIELDS:
            fields[key] = _as_bool(key, value)
        elif key in _LIST_FIELDS:
            fields[key] = _as_strings(key, value)
        elif key == "reports_directory":
            fields[key] = str(value)
        elif key == "reporter":
            fields[key] = resolve_reporters(value)
        elif key == "watermarks":
            fields[key] = _resolve_watermarks(value)
        elif key == "custom_provider_module":
            fields[key] = str(value)

    thresholds = _resolve_thresholds(flat_thresholds, values.get("thresholds"))
    if fields.pop("check_coverage", False):
        thresholds = _full_thresholds()
        fields["check_coverage"] = True
    fields["thresholds"] = thresholds

    if kind is ProviderKind.NATIVE:
        return NativeCoverageOptions(**fields)
    if kind is ProviderKind.INSTRUMENT:
        return InstrumentCoverageOptions(**fields)
    if kind is ProviderKind.CUSTOM:
        module = fields.get("custom_provider_module", "").strip()
        if not module:
            msg = "provider 'custom' requires 'custom_provider_module' (a module name or file path)"
            raise ConfigurationError(msg)
        fields["custom_provider_module"] = module
        return CustomCoverageOptions(**fields)
    assert_never(kind)


def apply_cli_overrides(
    options: ResolvedCoverageOptions,
    *,
    coverage: bool | None = None,
    check_coverage: bool = False,
    thresholds: Thresholds | None = None,
) -> ResolvedCoverageOptions:
    """Layer command-line flags on top of resolved options.

    ``--check-coverage`` wins over explicit ``--threshold`` values.
    """
    changes: dict[str, Any] = {}
    if coverage is not None:
        changes["enabled"] = coverage
    if thresholds is not None:
        merged = {m.value: v for m, v in options.thresholds.configured().items()}
        merged.update({m.value: v for m, v in thresholds.configured().items()})
        changes["thresholds"] = Thresholds(**merged)
    if check_coverage:
        changes["thresholds"] = _full_thresholds()
    return dataclasses.replace(options, **changes) if changes else options


def resolve_reporters(value: object) -> tuple[ReporterSpec, ...]:
    """Normalise the accepted reporter spellings to a tuple of :class:`ReporterSpec`.

    Accepted forms: ``"text"``, ``["text", "json"]``, ``[["html"]]`` and
    ``[["json", {"file": "out.json"}]]`` (mixed freely).
    """
    items: Sequence[Any] = [value] if isinstance(value, str) else value  # type: ignore[assignment]
    if not isinstance(items, Sequence):
        msg = f"reporter must be a string or a list, got {type(value).__name__}"
        raise ConfigurationError(msg)

    specs: list[ReporterSpec] = []
    for item in items:
        if isinstance(item, ReporterSpec):
            specs.append(item)
        elif isinstance(item, str):
            specs.append(ReporterSpec(item))
        elif isinstance(item, Sequence) and 1 <= len(item) <= 2 and isinstance(item[0], str):  # noqa: PLR2004
            opts = item[1] if len(item) == 2 else {}  # noqa: PLR2004
            if not isinstance(opts, Mapping):
                msg = f"options for reporter {item[0]!r} must be a table"
                raise ConfigurationError(msg)
            specs.append(ReporterSpec(item[0], dict(opts)))
        else:
            msg = f"invalid reporter entry: {item!r}"
            raise ConfigurationError(msg)
    return tuple(specs)


def _resolve_thresholds(flat: Mapping[str, Any], nested: object) -> Thresholds:
    merged: dict[str, Any] = dict(flat)
    if nested is not None:
        if not isinstance(nested, Mapping):
            msg = "thresholds must be a table of metric = percentage"
            raise ConfigurationError(msg)
        merged.update({normalize_key(str(k)): v for k, v in nested.items() if v is not None})

    values: dict[str, float] = {}
    for key, value in merged.items():
        if value is None:
            continue
        if key not in _THRESHOLD_KEYS:
            logger.debug("dropping unknown threshold metric %r", key)
            continue
        values[key] = _as_percentage(f"thresholds.{key}", value)
    return Thresholds(**values)


def _resolve_watermarks(value: object) -> Watermarks:
    if not isinstance(value, Mapping):
        msg = "watermarks must be a table of metric = [low, high]"
        raise ConfigurationError(msg)
    pairs: dict[str, tuple[float, float]] = {}
    for key, pair in value.items():
        name = normalize_key(str(key))
        if name not in _THRESHOLD_KEYS:
            logger.debug("dropping unknown watermark metric %r", name)
            continue
        if isinstance(pair, str) or not isinstance(pair, Sequence) or len(pair) != 2:  # noqa: PLR2004
            msg = f"watermarks.{name} must be a [low, high] pair"
            raise ConfigurationError(msg)
        low = _as_percentage(f"watermarks.{name}", pair[0])
        high = _as_percentage(f"watermarks.{name}", pair[1])
        if low > high:
            msg = f"watermarks.{name} requires low <= high, got [{low:g}, {high:g}]"
            raise ConfigurationError(msg)
        pairs[name] = (low, high)
    return Watermarks(**pairs)


def _full_thresholds() -> Thresholds:
    full = float(FULL_COVERAGE)
    return Thresholds(lines=full, functions=full, branches=full, statements=full)


def _as_bool(key: str, value: object) -> bool:
    if not isinstance(value, bool):
        msg = f"{key} must be true or false, got {value!r}"
        raise ConfigurationError(msg)
    return value


def _as_strings(key: str, value: object) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, Sequence) and all(isinstance(v, str) for v in value):
        return tuple(value)
    msg = f"{key} must be a string or a list of strings"
    raise ConfigurationError(msg)


def _as_percentage(key: str, value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        msg = f"{key} must be a number, got {value!r}"
        raise ConfigurationError(msg)
    if not 0 <= value <= FULL_COVERAGE:
        msg = f"{key} must be within 0..{FULL_COVERAGE}, got {value}"
        raise ConfigurationError(msg)
    return float(value)


__all__ = [
    "apply_cli_overrides",
    "normalize_key",
    "resolve_options",
    "resolve_provider",
    "resolve_reporters",
]
