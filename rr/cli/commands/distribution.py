from __future__ import annotations

import typer

from rr.cli.commands._helpers import parse_platform, unwrap_or_exit
from rr.cli.context import build_context
from rr.output.render import render_distribution

distribution_app = typer.Typer(add_completion=False, no_args_is_help=True)


@distribution_app.command("configure")
def configure_cmd(
    release: str = typer.Option(..., "--release", "-r", help="Release id"),
    tenant: str = typer.Option(..., "--tenant", "-t", help="Tenant id"),
    platform: list[str] = typer.Option(
        ..., "--platform", "-p", help="Target platform (repeatable): ANDROID, IOS"
    ),
) -> None:
    """Declare the platforms a release is distributed to."""
    ctx = build_context()
    platforms = [parse_platform(ctx, p) for p in platform]
    distribution = ctx.tracker.configure_distribution(release, tenant, platforms)
    ctx.console.success(
        f"{release}: {', '.join(str(p) for p in distribution.platforms)} (tenant {tenant})"
    )


@distribution_app.command("status")
def status_cmd(release: str = typer.Option(..., "--release", "-r", help="Release id")) -> None:
    """Show the release-level distribution status."""
    ctx = build_context()
    view = unwrap_or_exit(ctx.tracker.get_distribution_status(release), ctx)
    render_distribution(view, ctx.console)
