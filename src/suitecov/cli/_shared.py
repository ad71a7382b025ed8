from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

from suitecov._meta import logger
from suitecov.cli.exit_codes import EXIT_CONFIG
from suitecov.core.config import LOG_FORMAT, load_pyproject_options
from suitecov.core.model.thresholds import parse_threshold
from suitecov.core.resolve import apply_cli_overrides, resolve_options
from suitecov.errors import ConfigurationError

if TYPE_CHECKING:
    from suitecov.core.model.options import ResolvedCoverageOptions

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="pyproject.toml holding [tool.suitecov.coverage] (default: ./pyproject.toml)."),
]


def configure_runtime(*, quiet: bool, verbose: bool) -> None:
    """Configure logging based on *quiet*/*verbose*."""
    level = logging.ERROR if quiet else (logging.DEBUG if verbose else logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logger.debug("verbose logging enabled")


def fail(message: str, code: int) -> typer.Exit:
    typer.echo(f"ERROR: {message}", err=True)
    return typer.Exit(code=code)


def locate_config(config: Path | None) -> Path | None:
    """Return the config file to read, or ``None`` to use defaults only."""
    if config is None:
        default = Path.cwd() / "pyproject.toml"
        return default if default.is_file() else None
    if not config.is_file():
        raise fail(f"config file not found: {config}", EXIT_CONFIG)
    return config.resolve()


def load_options(
    config_file: Path | None,
    *,
    provider: str | None = None,
    coverage: bool | None = None,
    check_coverage: bool = False,
    threshold: str | None = None,
) -> ResolvedCoverageOptions:
    """Resolve options from *config_file* and layer the command-line overrides on top."""
    user = load_pyproject_options(config_file) if config_file else {}
    try:
        options = resolve_options(user, provider)
        thresholds = parse_threshold(threshold) if threshold else None
    except (ConfigurationError, ValueError) as exc:
        raise fail(str(exc), EXIT_CONFIG) from exc
    return apply_cli_overrides(
        options,
        coverage=coverage,
        check_coverage=check_coverage,
        thresholds=thresholds,
    )


def project_root(config_file: Path | None) -> Path:
    return config_file.parent if config_file else Path.cwd()


__all__ = ["ConfigOption", "configure_runtime", "fail", "load_options", "locate_config", "project_root"]
