from __future__ import annotations

import dataclasses
import json
from typing import Annotated

import typer

from suitecov.cli._shared import ConfigOption, load_options, locate_config


def options_cmd(
    config: ConfigOption = None,
    provider: Annotated[
        str | None,
        typer.Option("--provider", help="Override the configured provider (native, instrument, custom)."),
    ] = None,
    coverage: Annotated[
        bool | None,
        typer.Option("--coverage/--no-coverage", help="Force coverage on or off."),
    ] = None,
    check_coverage: Annotated[
        bool,
        typer.Option("--check-coverage", help="Require 100% for every metric."),
    ] = False,
) -> None:
    """Print the fully resolved coverage options as JSON."""
    resolved = load_options(
        locate_config(config),
        provider=provider,
        coverage=coverage,
        check_coverage=check_coverage,
    )
    typer.echo(json.dumps(dataclasses.asdict(resolved), indent=2, sort_keys=True))


def register(app: typer.Typer) -> None:
    app.command("options")(options_cmd)


__all__ = ["register"]
