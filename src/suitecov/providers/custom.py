"""Loading of user-supplied provider modules."""

from __future__ import annotations

import importlib.util
import sys
from importlib import import_module
from pathlib import Path
from typing import TYPE_CHECKING

from suitecov._meta import logger
from suitecov.errors import ProviderInitializationError

if TYPE_CHECKING:
    from types import ModuleType


def _is_file_reference(ref: str) -> bool:
    return ref.endswith(".py") or "/" in ref or "\\" in ref


def _load_from_file(path: Path) -> ModuleType:
    if not path.is_file():
        msg = f"custom coverage provider file not found: {path}"
        raise ProviderInitializationError(msg)
    name = f"suitecov_custom_{path.stem}"
    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        msg = f"cannot load custom coverage provider from {path}"
        raise ProviderInitializationError(msg)
    module = importlib.util.module_from_spec(spec)
    # dataclasses and typing.get_type_hints look the module up by name
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(name, None)
        msg = f"custom coverage provider {path} failed to import: {exc}"
        raise ProviderInitializationError(msg) from exc
    return module


def load_custom_module(ref: str, *, root: Path | None = None) -> ModuleType:
    """Import *ref* as a dotted module name or a ``.py`` path relative to *root*."""
    if _is_file_reference(ref):
        path = Path(ref)
        if not path.is_absolute():
            path = (root or Path.cwd()) / path
        module = _load_from_file(path)
    else:
        try:
            module = import_module(ref)
        except Exception as exc:
            msg = f"cannot import custom coverage provider {ref!r}: {exc}"
            raise ProviderInitializationError(msg) from exc

    if not callable(getattr(module, "get_provider", None)):
        msg = f"custom coverage provider {ref!r} does not define get_provider()"
        raise ProviderInitializationError(msg)
    logger.debug("loaded custom coverage provider module %s", module.__name__)
    return module


__all__ = ["load_custom_module"]
