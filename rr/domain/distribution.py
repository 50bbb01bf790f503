"""Release-level distribution status, derived from the latest submissions."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from rr.domain.models import (
    Distribution,
    DistributionStatus,
    Platform,
    Submission,
    SubmissionStatus,
)

__all__ = [
    "PlatformSnapshot",
    "DistributionSnapshot",
    "latest_by_platform",
    "derive_status",
    "snapshot",
]

_NOT_SUBMITTED = frozenset({SubmissionStatus.PENDING, SubmissionStatus.CANCELLED})


@dataclass(frozen=True, slots=True)
class PlatformSnapshot:
    platform: Platform
    submitted: bool
    submission_id: str | None
    status: SubmissionStatus | None
    exposure_percent: float
    rollout_day: int | None


@dataclass(frozen=True, slots=True)
class DistributionSnapshot:
    release_id: str
    release_status: DistributionStatus
    platforms: tuple[PlatformSnapshot, ...]
    overall_progress: float
    is_complete: bool


def _is_submitted(submission: Submission | None) -> bool:
    return submission is not None and submission.status not in _NOT_SUBMITTED


def _is_fully_released(submission: Submission | None) -> bool:
    return (
        submission is not None
        and submission.status is SubmissionStatus.LIVE
        and submission.exposure_percent >= 100.0
    )


def latest_by_platform(submissions: Iterable[Submission]) -> dict[Platform, Submission]:
    """Pick the current submission per platform.

    Superseded records are skipped. If several live records exist for one
    platform (should not happen), the last one wins.
    """
    latest: dict[Platform, Submission] = {}
    for submission in submissions:
        if submission.is_superseded:
            continue
        latest[submission.platform] = submission
    return latest


def derive_status(
    platforms: Iterable[Platform], latest: dict[Platform, Submission]
) -> DistributionStatus:
    current = [latest.get(p) for p in platforms]
    if not current:
        return DistributionStatus.PENDING

    released = [_is_fully_released(s) for s in current]
    submitted = [_is_submitted(s) for s in current]

    if all(released):
        return DistributionStatus.RELEASED
    if any(released):
        return DistributionStatus.PARTIALLY_RELEASED
    if all(submitted):
        return DistributionStatus.SUBMITTED
    if any(submitted):
        return DistributionStatus.PARTIALLY_SUBMITTED
    return DistributionStatus.PENDING


def snapshot(distribution: Distribution, submissions: Iterable[Submission]) -> DistributionSnapshot:
    """Build the distribution view for a release."""
    latest = latest_by_platform(submissions)

    rows: list[PlatformSnapshot] = []
    for platform in distribution.platforms:
        current = latest.get(platform)
        submitted = _is_submitted(current)
        rows.append(
            PlatformSnapshot(
                platform=platform,
                submitted=submitted,
                submission_id=current.id if current else None,
                status=current.status if current else None,
                exposure_percent=current.exposure_percent if current and submitted else 0.0,
                rollout_day=current.rollout_day if current else None,
            )
        )

    progress = sum(r.exposure_percent for r in rows) / len(rows) if rows else 0.0
    status = derive_status(distribution.platforms, latest)
    return DistributionSnapshot(
        release_id=distribution.release_id,
        release_status=status,
        platforms=tuple(rows),
        overall_progress=round(progress, 2),
        is_complete=status is DistributionStatus.RELEASED,
    )
