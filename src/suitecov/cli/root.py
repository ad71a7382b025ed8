from __future__ import annotations

from typing import Annotated

import typer
from typer.main import get_command

from suitecov import __version__
from suitecov.cli import clean, options, report
from suitecov.cli._shared import configure_runtime


def _show_version(value: bool) -> None:  # noqa: FBT001
    if value:
        typer.echo(f"suitecov {__version__}")
        raise typer.Exit


def create_app() -> typer.Typer:
    app = typer.Typer(help="Coverage aggregation, reporting and threshold checks for parallel test runs.")

    @app.callback()
    def _root(
        *,
        version: Annotated[  # noqa: ARG001
            bool,
            typer.Option("--version", help="Show version and exit", callback=_show_version, is_eager=True),
        ] = False,
        verbose: Annotated[
            bool,
            typer.Option("-v", "--verbose", help="Log debug details."),
        ] = False,
        quiet: Annotated[
            bool,
            typer.Option("-q", "--quiet", help="Only log errors."),
        ] = False,
    ) -> None:
        configure_runtime(quiet=quiet, verbose=verbose)

    options.register(app)
    clean.register(app)
    report.register(app)

    return app


def main() -> None:
    app = create_app()
    get_command(app)()


# Click-compatible object for tooling that imports it
cli = get_command(create_app())

__all__ = ["cli", "create_app", "main"]
