"""Stale-view detection for rollout commands.

A caller may say what it saw when it decided to act (version and/or
exposure). The check runs inside the submission's record lock, so nothing
can change between the check and the write that follows it.
"""

from __future__ import annotations

from dataclasses import dataclass

from rr.core.result import Err, Ok, Result
from rr.domain.errors import ConflictDetected
from rr.domain.models import Submission

__all__ = ["ObservedState", "ConflictResolver"]


@dataclass(frozen=True, slots=True)
class ObservedState:
    """What the caller last saw. Unset fields are not checked."""

    version_name: str | None = None
    exposure_percent: float | None = None


class ConflictResolver:
    def check(
        self, submission: Submission, observed: ObservedState | None
    ) -> Result[Submission, ConflictDetected]:
        """Return the submission unchanged if the caller's view still holds.

        A superseded submission is always a version conflict: the caller is
        acting on a record a newer submission has replaced.
        """
        if submission.superseded_by is not None:
            return Err(
                ConflictDetected(
                    kind="version",
                    submission_id=submission.id,
                    expected=submission.id,
                    current=submission.superseded_by,
                    submission=submission,
                )
            )
        if observed is None:
            return Ok(submission)

        if observed.version_name is not None and observed.version_name != submission.version_name:
            return Err(
                ConflictDetected(
                    kind="version",
                    submission_id=submission.id,
                    expected=observed.version_name,
                    current=submission.version_name,
                    submission=submission,
                )
            )
        if (
            observed.exposure_percent is not None
            and observed.exposure_percent != submission.exposure_percent
        ):
            return Err(
                ConflictDetected(
                    kind="exposure",
                    submission_id=submission.id,
                    expected=f"{observed.exposure_percent:g}%",
                    current=f"{submission.exposure_percent:g}%",
                    submission=submission,
                )
            )
        return Ok(submission)
