from __future__ import annotations

import shutil
from pathlib import Path

import typer

from suitecov.cli._shared import ConfigOption, load_options, locate_config, project_root
from suitecov.cli.exit_codes import EXIT_GENERIC


def clean_cmd(config: ConfigOption = None) -> None:
    """Remove the reports directory, including collected worker payloads."""
    config_file = locate_config(config)
    resolved = load_options(config_file)
    directory = Path(resolved.reports_directory)
    if not directory.is_absolute():
        directory = project_root(config_file) / directory

    if not directory.exists():
        typer.echo(f"nothing to clean at {directory}")
        return
    try:
        shutil.rmtree(directory)
    except OSError as exc:
        typer.echo(f"ERROR: cannot remove {directory}: {exc}", err=True)
        raise typer.Exit(code=EXIT_GENERIC) from exc
    typer.echo(f"removed {directory}")


def register(app: typer.Typer) -> None:
    app.command("clean")(clean_cmd)


__all__ = ["register"]
