from __future__ import annotations

import logging
from importlib.metadata import version

__version__ = version("suitecov")

logger = logging.getLogger("suitecov")

__all__ = ["__version__", "logger"]
