"""Plain-text rendering of poll summaries, distributions and submissions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rr.output.console import Style
from rr.output.errors import format_engine_error

if TYPE_CHECKING:
    from rr.domain.distribution import DistributionSnapshot
    from rr.domain.models import Build, Submission
    from rr.output.console import ConsoleProtocol
    from rr.services.reconciler import PollSummary

__all__ = ["render_poll_summary", "render_distribution", "render_submission", "render_builds"]


def render_poll_summary(summary: PollSummary, console: ConsoleProtocol) -> None:
    console.header(f"{summary.phase} poll: {summary.release_id}")
    for result in summary.results:
        if result.error is not None:
            console.print(
                f"  {result.build_id}: {result.previous_status} "
                f"({format_engine_error(result.error)})",
                Style.WARNING,
            )
        elif result.updated:
            run = f" run={result.run_id}" if result.run_id else ""
            console.print(
                f"  {result.build_id}: {result.previous_status} -> {result.new_status}{run}",
                Style.SUCCESS,
            )
        else:
            console.print(f"  {result.build_id}: {result.previous_status} (unchanged)", Style.DIM)
    console.print(
        f"processed={summary.processed} updated={summary.updated} callbacks={summary.callbacks}"
    )


def render_distribution(view: DistributionSnapshot, console: ConsoleProtocol) -> None:
    console.header(f"release {view.release_id}: {view.release_status}")
    for row in view.platforms:
        if row.submission_id is None:
            console.print(f"  {row.platform:<8} not submitted", Style.DIM)
            continue
        day = f" day {row.rollout_day}/7" if row.rollout_day else ""
        console.print(
            f"  {row.platform:<8} {row.status} {row.exposure_percent:g}%{day} ({row.submission_id})"
        )
    done = "complete" if view.is_complete else "in progress"
    console.print(f"overall progress: {view.overall_progress:g}% ({done})")


def render_submission(
    submission: Submission, console: ConsoleProtocol, *, history: bool = False
) -> None:
    console.print(
        f"{submission.id} {submission.platform} {submission.version_name}: "
        f"{submission.status} {submission.exposure_percent:g}%",
        Style.BOLD,
    )
    if submission.rollout_day:
        console.print(f"  phased release day {submission.rollout_day}/7", Style.DIM)
    if submission.status_reason:
        console.print(f"  reason: {submission.status_reason}", Style.DIM)
    if submission.superseded_by:
        console.print(f"  superseded by {submission.superseded_by}", Style.DIM)
    if history:
        for entry in submission.history:
            change = ""
            if entry.previous_percent is not None and entry.new_percent is not None:
                change = f" {entry.previous_percent:g}% -> {entry.new_percent:g}%"
            reason = f" ({entry.reason})" if entry.reason else ""
            by = f" by {entry.actor}" if entry.actor else ""
            console.print(f"  {entry.at} {entry.action}{change}{reason}{by}", Style.DIM)


def render_builds(builds: list[Build], console: ConsoleProtocol) -> None:
    for build in builds:
        console.print(
            f"{build.id} {build.platform}/{build.target} {build.provider_type or '-'}: "
            f"{build.workflow_status} upload={build.upload_status}"
        )
