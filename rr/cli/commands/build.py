from __future__ import annotations

import typer

from rr.cli.commands._helpers import exit_user_error, parse_platform
from rr.cli.context import build_context
from rr.domain.models import Build, ProviderType, WorkflowStatus
from rr.output.render import render_builds

build_app = typer.Typer(add_completion=False, no_args_is_help=True)


@build_app.command("add")
def add_cmd(
    build_id: str = typer.Option(..., "--id", help="Build id"),
    release: str = typer.Option(..., "--release", "-r", help="Release id"),
    platform: str = typer.Option(..., "--platform", "-p", help="ANDROID or IOS"),
    target: str = typer.Option(..., "--target", help="Build target (e.g. PLAY_STORE)"),
    provider: str = typer.Option(..., "--provider", help="JENKINS, GITHUB_ACTIONS, ..."),
    queue_location: str = typer.Option(..., "--queue", help="Queue item or run URL"),
    task: str | None = typer.Option(None, "--task", help="Release task to notify"),
) -> None:
    """Record a build whose CI/CD trigger has been accepted."""
    ctx = build_context()
    provider_type = ProviderType.parse(provider)
    if provider_type is None:
        exit_user_error(ctx, f"unknown provider '{provider}'")
    if ctx.store.get_build(build_id) is not None:
        exit_user_error(ctx, f"build {build_id} already exists")
    ctx.store.add_build(
        Build(
            id=build_id,
            release_id=release,
            platform=parse_platform(ctx, platform),
            target=target,
            provider_type=provider_type,
            queue_location=queue_location,
            task_id=task,
        )
    )
    ctx.console.success(f"{build_id}: PENDING on {provider_type}")


@build_app.command("list")
def list_cmd(release: str = typer.Option(..., "--release", "-r", help="Release id")) -> None:
    """List the builds of a release."""
    ctx = build_context()
    builds = [b for status in WorkflowStatus for b in ctx.store.find_builds(release, status)]
    if not builds:
        ctx.console.print(f"no builds for {release}")
        return
    render_builds(builds, ctx.console)
