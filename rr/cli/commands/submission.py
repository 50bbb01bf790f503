from __future__ import annotations

import typer

from rr.cli.commands._helpers import (
    exit_user_error,
    parse_platform,
    parse_severity,
    unwrap_or_exit,
)
from rr.cli.context import build_context
from rr.domain.models import SubmissionStatus
from rr.output.render import render_submission

submission_app = typer.Typer(add_completion=False, no_args_is_help=True)

_ID = typer.Argument(..., help="Submission id")


@submission_app.command("submit")
def submit_cmd(
    release: str = typer.Option(..., "--release", "-r", help="Release id"),
    platform: str = typer.Option(..., "--platform", "-p", help="ANDROID or IOS"),
    version: str = typer.Option(..., "--version", help="Version name"),
    manual: bool = typer.Option(
        False, "--manual", help="iOS: release to everyone at once instead of phased"
    ),
) -> None:
    """Submit a release build to its store for review."""
    ctx = build_context()
    target = parse_platform(ctx, platform)
    submission = unwrap_or_exit(
        ctx.tracker.submit(release, target, version, phased_release=not manual), ctx
    )
    ctx.console.success(f"{submission.id}: {submission.status}")


@submission_app.command("approve")
def approve_cmd(submission_id: str = _ID) -> None:
    """Record store approval."""
    ctx = build_context()
    submission = unwrap_or_exit(ctx.tracker.mark_approved(submission_id), ctx)
    ctx.console.success(f"{submission.id}: {submission.status}")


@submission_app.command("live")
def live_cmd(
    submission_id: str = _ID,
    exposure: float | None = typer.Option(
        None, "--exposure", help="Android: initial rollout percent (default 100)"
    ),
) -> None:
    """Release an approved submission."""
    ctx = build_context()
    submission = unwrap_or_exit(ctx.tracker.mark_live(submission_id, exposure), ctx)
    ctx.console.success(f"{submission.id}: {submission.status} {submission.exposure_percent:g}%")


@submission_app.command("reject")
def reject_cmd(
    submission_id: str = _ID,
    reason: str = typer.Option(..., "--reason", help="Store rejection reason"),
) -> None:
    """Record a store rejection."""
    ctx = build_context()
    submission = unwrap_or_exit(ctx.tracker.mark_rejected(submission_id, reason), ctx)
    ctx.console.success(f"{submission.id}: {submission.status}")


@submission_app.command("cancel")
def cancel_cmd(
    submission_id: str = _ID,
    reason: str = typer.Option(..., "--reason", help="Why the submission is withdrawn"),
) -> None:
    """Withdraw a submission before it goes live."""
    ctx = build_context()
    submission = unwrap_or_exit(ctx.tracker.cancel(submission_id, reason), ctx)
    ctx.console.success(f"{submission.id}: {submission.status}")


@submission_app.command("resubmit")
def resubmit_cmd(
    submission_id: str = _ID,
    version: str = typer.Option(..., "--version", help="New version name"),
    reason: str | None = typer.Option(None, "--reason", help="Why a new version is shipped"),
) -> None:
    """Replace a submission with a new one for a new version."""
    ctx = build_context()
    submission = unwrap_or_exit(
        ctx.tracker.resubmit(submission_id, version, reason=reason), ctx
    )
    ctx.console.success(f"{submission.id}: {submission.status} (replaces {submission_id})")


@submission_app.command("store-update")
def store_update_cmd(
    submission_id: str = _ID,
    status: str | None = typer.Option(None, "--status", help="Status reported by the store"),
    exposure: float | None = typer.Option(None, "--exposure", help="Reported exposure"),
    day: int | None = typer.Option(None, "--day", help="iOS phased release day (1-7)"),
    reason: str | None = typer.Option(None, "--reason", help="Rejection or halt reason"),
    severity: str = typer.Option("HIGH", "--severity", help="Halt severity"),
) -> None:
    """Apply a status report from store polling."""
    ctx = build_context()
    level = parse_severity(ctx, severity)
    parsed: SubmissionStatus | None = None
    if status is not None:
        try:
            parsed = SubmissionStatus(status.strip().upper())
        except ValueError:
            exit_user_error(ctx, f"unknown submission status '{status}'")
    submission = unwrap_or_exit(
        ctx.tracker.apply_store_update(
            submission_id,
            status=parsed,
            exposure_percent=exposure,
            rollout_day=day,
            reason=reason,
            severity=level,
        ),
        ctx,
    )
    render_submission(submission, ctx.console)


@submission_app.command("show")
def show_cmd(submission_id: str = _ID) -> None:
    """Show a submission and its action history."""
    ctx = build_context()
    submission = unwrap_or_exit(ctx.tracker.get_submission(submission_id), ctx)
    render_submission(submission, ctx.console, history=True)
