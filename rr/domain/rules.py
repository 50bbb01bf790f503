"""Per-platform rollout rules.

Android staged rollouts are operator driven: any percentage in [0, 100],
decimals allowed, never decreasing. iOS phased releases follow Apple's
seven-day schedule; the store advances exposure on its own and the only
manual override is releasing to everyone early. iOS manual releases go to
100% at once and have no rollout controls.
"""

from __future__ import annotations

from rr.domain.models import Platform, Submission

__all__ = [
    "IOS_PHASED_SCHEDULE",
    "MIN_PERCENT",
    "MAX_PERCENT",
    "initial_live_exposure",
    "rollout_day_for",
    "supports_manual_exposure",
    "supports_pause",
    "supports_complete_early",
    "validate_exposure",
]

MIN_PERCENT = 0.0
MAX_PERCENT = 100.0

# Day N of the phased release -> exposure percent.
IOS_PHASED_SCHEDULE: tuple[float, ...] = (1.0, 2.0, 5.0, 10.0, 20.0, 50.0, 100.0)


def is_phased(submission: Submission) -> bool:
    return submission.platform is Platform.IOS and submission.phased_release


def is_ios_manual(submission: Submission) -> bool:
    return submission.platform is Platform.IOS and not submission.phased_release


def supports_manual_exposure(submission: Submission) -> bool:
    """Only Android accepts arbitrary exposure changes from an operator."""
    return submission.platform is Platform.ANDROID


def supports_pause(submission: Submission) -> bool:
    return not is_ios_manual(submission)


def supports_complete_early(submission: Submission) -> bool:
    return is_phased(submission)


def initial_live_exposure(submission: Submission, requested: float | None) -> float:
    """Exposure a submission starts at when it goes live."""
    if is_ios_manual(submission):
        return MAX_PERCENT
    if is_phased(submission):
        return IOS_PHASED_SCHEDULE[0]
    return MAX_PERCENT if requested is None else requested


def rollout_day_for(exposure_percent: float) -> int:
    """Day of the phased schedule that a given exposure corresponds to (1-7)."""
    day = 1
    for index, threshold in enumerate(IOS_PHASED_SCHEDULE, start=1):
        if exposure_percent >= threshold:
            day = index
    return day


def validate_exposure(submission: Submission, new_percent: float) -> str | None:
    """Return a human-readable reason if ``new_percent`` is not acceptable.

    Only checks the platform rules and the range. Monotonicity relative to
    the current exposure is checked by the caller, which knows whether a
    resume-at-lower-value is in play.
    """
    if not MIN_PERCENT <= new_percent <= MAX_PERCENT:
        return f"exposure must be between 0 and 100 (got {new_percent:g})"
    if is_ios_manual(submission):
        return "iOS manual release is always 100%; exposure cannot be changed"
    if is_phased(submission):
        return (
            "iOS phased release exposure is driven by the App Store schedule "
            f"(day {submission.rollout_day or 1} of 7); use complete-early to release to everyone"
        )
    return None
