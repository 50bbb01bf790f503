from __future__ import annotations

import typer

from rr.cli.commands._helpers import exit_user_error
from rr.cli.context import CLIContext, build_context
from rr.output.render import render_poll_summary
from rr.services.reconciler import poll_cycle

poll_app = typer.Typer(add_completion=False, no_args_is_help=True)

_RELEASE = typer.Option(..., "--release", "-r", help="Release id")
_TENANT = typer.Option(
    None, "--tenant", "-t", help="Tenant id (defaults to the release's distribution tenant)"
)


def _tenant_for(ctx: CLIContext, release_id: str, tenant: str | None) -> str:
    if tenant:
        return tenant
    distribution = ctx.store.get_distribution(release_id)
    if distribution is None:
        exit_user_error(ctx, f"no tenant known for release {release_id}; pass --tenant")
    return distribution.tenant_id


@poll_app.command("pending")
def pending_cmd(release: str = _RELEASE, tenant: str | None = _TENANT) -> None:
    """Advance PENDING builds from their provider queue status."""
    ctx = build_context()
    summary = ctx.reconciler.poll_pending_workflows(release, _tenant_for(ctx, release, tenant))
    render_poll_summary(summary, ctx.console)


@poll_app.command("running")
def running_cmd(release: str = _RELEASE, tenant: str | None = _TENANT) -> None:
    """Advance RUNNING builds from their provider run status."""
    ctx = build_context()
    summary = ctx.reconciler.poll_running_workflows(release, _tenant_for(ctx, release, tenant))
    render_poll_summary(summary, ctx.console)


@poll_app.command("cycle")
def cycle_cmd(release: str = _RELEASE, tenant: str | None = _TENANT) -> None:
    """One scheduler tick: pending pass, then running pass."""
    ctx = build_context()
    for summary in poll_cycle(ctx.reconciler, release, _tenant_for(ctx, release, tenant)):
        render_poll_summary(summary, ctx.console)
