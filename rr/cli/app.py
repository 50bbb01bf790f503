from __future__ import annotations

import os
from pathlib import Path

import typer

from rr import __version__
from rr.cli.commands.build import build_app
from rr.cli.commands.distribution import distribution_app
from rr.cli.commands.poll import poll_app
from rr.cli.commands.rollout import rollout_app
from rr.cli.commands.submission import submission_app
from rr.cli.context import CONFIG_ENV
from rr.core.errors import ErrorCode
from rr.output.console import RichConsole
from rr.output.errors import engine_error_exit_code, print_engine_error
from rr.store.state import StateReadError

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Sub-apps
app.add_typer(poll_app, name="poll", help="Reconcile build status with CI/CD providers.")
app.add_typer(build_app, name="build", help="Register and list builds.")
app.add_typer(distribution_app, name="distribution", help="Release distribution status.")
app.add_typer(submission_app, name="submission", help="Store submission lifecycle.")
app.add_typer(rollout_app, name="rollout", help="Phased rollout control.")


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    config: Path | None = typer.Option(
        None,
        "--config",
        help=f"Config file (default: rr.toml, or ${CONFIG_ENV})",
    ),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if config is not None:
        path = config.expanduser()
        if not path.is_file():
            typer.echo(f"error: --config '{path}' does not exist", err=True)
            raise typer.Exit(code=int(ErrorCode.CONFIG_ERROR))
        os.environ[CONFIG_ENV] = str(path)


def main() -> None:
    try:
        app()
    except StateReadError as e:
        print_engine_error(e.error, RichConsole())
        raise SystemExit(engine_error_exit_code(e.error)) from None
