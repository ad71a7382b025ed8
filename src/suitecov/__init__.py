from suitecov._meta import __version__, logger
from suitecov.errors import (
    ConfigurationError,
    IngestionError,
    LifecycleError,
    ProviderInitializationError,
    ReportWriteError,
    SuitecovError,
)

__all__ = [
    "ConfigurationError",
    "IngestionError",
    "LifecycleError",
    "ProviderInitializationError",
    "ReportWriteError",
    "SuitecovError",
    "__version__",
    "logger",
]
