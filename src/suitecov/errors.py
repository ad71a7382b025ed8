"""Centralised exception hierarchy for suitecov."""

from __future__ import annotations


class SuitecovError(Exception):
    """Base class for all custom suitecov exceptions."""


class ConfigurationError(SuitecovError):
    """Coverage options are invalid or a required option is missing."""


class ProviderInitializationError(SuitecovError):
    """The coverage provider could not be resolved or failed to initialise."""


class LifecycleError(SuitecovError):
    """An orchestrator operation was called in the wrong state."""


class IngestionError(SuitecovError):
    """A worker coverage payload was malformed and has been ignored."""


class ReportWriteError(SuitecovError):
    """A single reporter failed to render its output."""

    def __init__(self, reporter: str, cause: BaseException) -> None:
        super().__init__(f"reporter {reporter!r} failed: {cause}")
        self.reporter = reporter
        self.cause = cause


__all__ = [
    "ConfigurationError",
    "IngestionError",
    "LifecycleError",
    "ProviderInitializationError",
    "ReportWriteError",
    "SuitecovError",
]
