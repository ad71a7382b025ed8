from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, assert_never

from suitecov._meta import logger
from suitecov.core.model.options import (
    CustomCoverageOptions,
    InstrumentCoverageOptions,
    NativeCoverageOptions,
)
from suitecov.errors import ProviderInitializationError
from suitecov.providers.custom import load_custom_module

if TYPE_CHECKING:
    from pathlib import Path
    from types import ModuleType

    from suitecov.core.model.options import ResolvedCoverageOptions

NATIVE_MODULE = "suitecov.providers.native"
INSTRUMENT_MODULE = "suitecov.providers.instrument"


def load_provider_module(options: ResolvedCoverageOptions, *, root: Path | None = None) -> ModuleType:
    """Return the provider module selected by ``options.provider``."""
    if isinstance(options, NativeCoverageOptions):
        name = NATIVE_MODULE
    elif isinstance(options, InstrumentCoverageOptions):
        name = INSTRUMENT_MODULE
    elif isinstance(options, CustomCoverageOptions):
        return load_custom_module(options.custom_provider_module, root=root)
    else:
        assert_never(options)

    logger.debug("loading %s coverage provider from %s", options.provider, name)
    try:
        return import_module(name)
    except ImportError as exc:
        msg = f"cannot import coverage provider {name!r}: {exc}"
        raise ProviderInitializationError(msg) from exc


__all__ = ["load_provider_module"]
