from __future__ import annotations

import typer

from rr.cli.commands._helpers import parse_severity, unwrap_or_exit
from rr.cli.context import CLIContext, build_context
from rr.domain.models import Submission
from rr.output.render import render_submission
from rr.services.conflicts import ObservedState

rollout_app = typer.Typer(add_completion=False, no_args_is_help=True)

_ID = typer.Argument(..., help="Submission id")
_EXPECT_PERCENT = typer.Option(
    None, "--expect-percent", help="Fail with a conflict unless exposure is still this value"
)
_EXPECT_VERSION = typer.Option(
    None, "--expect-version", help="Fail with a conflict unless the version is still this one"
)
_ACTOR = typer.Option(None, "--actor", help="Who is acting (recorded in history)")


def _observed(percent: float | None, version: str | None) -> ObservedState | None:
    if percent is None and version is None:
        return None
    return ObservedState(version_name=version, exposure_percent=percent)


def _done(ctx: CLIContext, submission: Submission) -> None:
    ctx.console.success(f"{submission.id} updated")
    render_submission(submission, ctx.console)


@rollout_app.command("update")
def update_cmd(
    submission_id: str = _ID,
    percent: float = typer.Argument(..., help="New exposure percent"),
    expect_percent: float | None = _EXPECT_PERCENT,
    expect_version: str | None = _EXPECT_VERSION,
    actor: str | None = _ACTOR,
) -> None:
    """Raise the rollout percentage (Android staged rollout)."""
    ctx = build_context()
    submission = unwrap_or_exit(
        ctx.rollout.update_rollout(
            submission_id, percent, _observed(expect_percent, expect_version), actor=actor
        ),
        ctx,
    )
    _done(ctx, submission)


@rollout_app.command("pause")
def pause_cmd(
    submission_id: str = _ID,
    reason: str = typer.Option(..., "--reason", help="Why the rollout is paused"),
    expect_percent: float | None = _EXPECT_PERCENT,
    expect_version: str | None = _EXPECT_VERSION,
    actor: str | None = _ACTOR,
) -> None:
    """Freeze the rollout at its current percentage."""
    ctx = build_context()
    submission = unwrap_or_exit(
        ctx.rollout.pause(
            submission_id, reason, _observed(expect_percent, expect_version), actor=actor
        ),
        ctx,
    )
    _done(ctx, submission)


@rollout_app.command("resume")
def resume_cmd(
    submission_id: str = _ID,
    percent: float | None = typer.Option(
        None, "--percent", help="Resume at a negotiated percent (may be lower)"
    ),
    expect_percent: float | None = _EXPECT_PERCENT,
    expect_version: str | None = _EXPECT_VERSION,
    actor: str | None = _ACTOR,
) -> None:
    """Resume a paused rollout."""
    ctx = build_context()
    submission = unwrap_or_exit(
        ctx.rollout.resume(
            submission_id, percent, _observed(expect_percent, expect_version), actor=actor
        ),
        ctx,
    )
    _done(ctx, submission)


@rollout_app.command("halt")
def halt_cmd(
    submission_id: str = _ID,
    reason: str = typer.Option(..., "--reason", help="Why the rollout is halted"),
    severity: str = typer.Option("HIGH", "--severity", help="CRITICAL, HIGH or MEDIUM"),
    expect_percent: float | None = _EXPECT_PERCENT,
    expect_version: str | None = _EXPECT_VERSION,
    actor: str | None = _ACTOR,
) -> None:
    """Stop the rollout for good (a new submission is needed to ship again)."""
    ctx = build_context()
    level = parse_severity(ctx, severity)
    submission = unwrap_or_exit(
        ctx.rollout.halt(
            submission_id, reason, level, _observed(expect_percent, expect_version), actor=actor
        ),
        ctx,
    )
    _done(ctx, submission)


@rollout_app.command("complete-early")
def complete_early_cmd(
    submission_id: str = _ID,
    expect_percent: float | None = _EXPECT_PERCENT,
    expect_version: str | None = _EXPECT_VERSION,
    actor: str | None = _ACTOR,
) -> None:
    """Release an iOS phased rollout to all users now."""
    ctx = build_context()
    submission = unwrap_or_exit(
        ctx.rollout.complete_early(
            submission_id, _observed(expect_percent, expect_version), actor=actor
        ),
        ctx,
    )
    _done(ctx, submission)
