"""Typed coverage options.

A resolved configuration is one of three frozen variants sharing
:class:`BaseCoverageOptions`; the ``provider`` field is the tag. Build them
through :func:`suitecov.core.resolve.resolve_options`, which fills every
defaulted field.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, TypeAlias

from suitecov.core.model.types import Metric, ProviderKind, Watermark

DEFAULT_INCLUDE: tuple[str, ...] = ("**",)

DEFAULT_EXTENSION: tuple[str, ...] = (".js", ".cjs", ".mjs", ".ts", ".tsx", ".jsx", ".vue", ".svelte")

DEFAULT_EXCLUDE: tuple[str, ...] = (
    "coverage/**",
    "dist/**",
    "build/**",
    "test/**",
    "tests/**",
    "**/test_*.py",
    "**/*_test.py",
    "**/conftest.py",
    "**/__tests__/**",
    "**/.venv/**",
    "**/setup.py",
    "**/noxfile.py",
)

DEFAULT_REPORTS_DIRECTORY = "./coverage"

DEFAULT_REPORTERS: tuple[str, ...] = ("text", "html", "clover", "json")

DEFAULT_WATERMARK: Watermark = (50.0, 80.0)


@dataclass(frozen=True, slots=True)
class ReporterSpec:
    """A reporter name paired with its reporter-specific options."""

    name: str
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Watermarks:
    """Low/high percentage bands per metric; used for colouring only."""

    statements: Watermark = DEFAULT_WATERMARK
    functions: Watermark = DEFAULT_WATERMARK
    branches: Watermark = DEFAULT_WATERMARK
    lines: Watermark = DEFAULT_WATERMARK

    def get(self, metric: Metric) -> Watermark:
        return getattr(self, metric.value)


@dataclass(frozen=True, slots=True)
class Thresholds:
    """Minimum coverage percentage per metric; ``None`` leaves a metric unchecked."""

    lines: float | None = None
    functions: float | None = None
    branches: float | None = None
    statements: float | None = None

    def get(self, metric: Metric) -> float | None:
        return getattr(self, metric.value)

    def configured(self) -> dict[Metric, float]:
        out: dict[Metric, float] = {}
        for metric in Metric:
            value = self.get(metric)
            if value is not None:
                out[metric] = value
        return out

    def is_empty(self) -> bool:
        return not self.configured()


@dataclass(frozen=True, slots=True, kw_only=True)
class BaseCoverageOptions:
    """Fields shared by every provider variant."""

    enabled: bool = False
    include: tuple[str, ...] = DEFAULT_INCLUDE
    exclude: tuple[str, ...] = DEFAULT_EXCLUDE
    extension: tuple[str, ...] = DEFAULT_EXTENSION
    all: bool = False
    clean: bool = True
    clean_on_rerun: bool = True
    reports_directory: str = DEFAULT_REPORTS_DIRECTORY
    reporter: tuple[ReporterSpec, ...] = tuple(ReporterSpec(name) for name in DEFAULT_REPORTERS)
    skip_full: bool = False
    per_file: bool = False
    thresholds: Thresholds = field(default_factory=Thresholds)
    watermarks: Watermarks = field(default_factory=Watermarks)
    threshold_auto_update: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class NativeCoverageOptions(BaseCoverageOptions):
    """Options for the tracer-backed provider."""

    provider: Literal[ProviderKind.NATIVE] = ProviderKind.NATIVE
    allow_external: bool = False
    exclude_node_modules: bool = True
    src: tuple[str, ...] | None = None
    check_coverage: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class InstrumentCoverageOptions(BaseCoverageOptions):
    """Options for the source-instrumentation provider."""

    provider: Literal[ProviderKind.INSTRUMENT] = ProviderKind.INSTRUMENT
    ignore_class_methods: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class CustomCoverageOptions(BaseCoverageOptions):
    """Options for a provider loaded from a user module or file."""

    custom_provider_module: str
    provider: Literal[ProviderKind.CUSTOM] = ProviderKind.CUSTOM


ResolvedCoverageOptions: TypeAlias = NativeCoverageOptions | InstrumentCoverageOptions | CustomCoverageOptions

BASE_FIELDS: frozenset[str] = frozenset(BaseCoverageOptions.__dataclass_fields__)

VARIANT_FIELDS: dict[ProviderKind, frozenset[str]] = {
    ProviderKind.NATIVE: frozenset({"allow_external", "exclude_node_modules", "src", "check_coverage"}),
    ProviderKind.INSTRUMENT: frozenset({"ignore_class_methods"}),
    ProviderKind.CUSTOM: frozenset({"custom_provider_module"}),
}

# Fields guaranteed to be present (never None) after resolution.
FIELDS_WITH_DEFAULTS: tuple[str, ...] = (
    "enabled",
    "clean",
    "clean_on_rerun",
    "reports_directory",
    "exclude",
    "extension",
)


__all__ = [
    "BASE_FIELDS",
    "DEFAULT_EXCLUDE",
    "DEFAULT_EXTENSION",
    "DEFAULT_INCLUDE",
    "DEFAULT_REPORTERS",
    "DEFAULT_REPORTS_DIRECTORY",
    "DEFAULT_WATERMARK",
    "FIELDS_WITH_DEFAULTS",
    "VARIANT_FIELDS",
    "BaseCoverageOptions",
    "CustomCoverageOptions",
    "InstrumentCoverageOptions",
    "NativeCoverageOptions",
    "ReporterSpec",
    "ResolvedCoverageOptions",
    "Thresholds",
    "Watermarks",
]
