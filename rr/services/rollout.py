"""Rollout control for live submissions.

Every operation runs inside the submission's record lock:

1. load the authoritative record
2. reject final states and stale caller views (``ConflictResolver``)
3. validate against the platform rules
4. call the store
5. commit locally, with an audit entry

Nothing is committed if the store call fails, and no other writer can slip
in between the check and the commit.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from rr.core.result import Err, Ok, Result
from rr.domain import rules
from rr.domain.errors import (
    InvalidSubmissionState,
    NotFound,
    RolloutError,
    RolloutValidationFailed,
    StoreCallFailed,
    TerminalStateViolation,
)
from rr.domain.models import RolloutAction, Severity, Submission, SubmissionStatus
from rr.output.console import ConsoleProtocol
from rr.services.conflicts import ConflictResolver, ObservedState
from rr.services.stores import StoreClient
from rr.services.submissions import SubmissionTracker, submission_lock
from rr.store.state import StateStore

__all__ = ["RolloutController"]

S = SubmissionStatus


@dataclass(frozen=True, slots=True)
class _Plan:
    """A validated mutation: the remote call to make, then the record to save."""

    remote: Callable[[], Result[None, StoreCallFailed]]
    updated: Submission
    summary: str


type _Decide = Callable[[Submission], Result[_Plan | None, RolloutError]]


class RolloutController:
    def __init__(
        self,
        store: StateStore,
        stores: StoreClient,
        tracker: SubmissionTracker,
        console: ConsoleProtocol,
        resolver: ConflictResolver | None = None,
    ) -> None:
        self._store = store
        self._stores = stores
        self._tracker = tracker
        self._console = console
        self._resolver = resolver or ConflictResolver()

    def _run(
        self,
        submission_id: str,
        operation: str,
        allowed: tuple[SubmissionStatus, ...],
        observed: ObservedState | None,
        decide: _Decide,
    ) -> Result[Submission, RolloutError]:
        with self._store.locked(submission_lock(submission_id)):
            current = self._store.get_submission(submission_id)
            if current is None:
                return Err(NotFound("submission", submission_id))
            if current.status is S.HALTED:
                return Err(TerminalStateViolation(current.id, current.status, operation))

            checked = self._resolver.check(current, observed)
            if isinstance(checked, Err):
                return checked

            if current.status not in allowed:
                hint = "create a new submission with resubmit" if current.status.is_final else None
                return Err(
                    InvalidSubmissionState(current.id, current.status, operation, allowed, hint)
                )

            decided = decide(current)
            if isinstance(decided, Err):
                return decided
            plan = decided.value
            if plan is None:
                return Ok(current)

            remote = plan.remote()
            if isinstance(remote, Err):
                return remote

            self._store.save_submission(plan.updated)
            self._console.info(f"{current.id} ({current.platform}): {plan.summary}")

        self._tracker.refresh(plan.updated.release_id)
        return Ok(plan.updated)

    def _reason(self, submission_id: str, reason: str, what: str) -> RolloutValidationFailed | None:
        if not reason.strip():
            return RolloutValidationFailed(submission_id, f"a {what} reason is required")
        return None

    # -------------------------------------------------------------------------

    def update_rollout(
        self,
        submission_id: str,
        percent: float,
        observed: ObservedState | None = None,
        *,
        actor: str | None = None,
    ) -> Result[Submission, RolloutError]:
        """Raise the exposure of a live submission.

        Exposure never goes down here; a lower value is only accepted when
        resuming a paused rollout. Setting the current value again is a no-op.

        Args:
            submission_id: Live submission to change.
            percent: New exposure in [0, 100]. Android only; iOS exposure
                follows the store schedule.
            observed: What the caller last saw. A mismatch with the stored
                submission is a ``ConflictDetected`` and nothing is changed.
            actor: Operator recorded in the action history.

        Returns:
            The updated submission, or the validation, conflict or store error
            that stopped the change. The store is called before anything is
            committed locally.
        """

        def decide(s: Submission) -> Result[_Plan | None, RolloutError]:
            problem = rules.validate_exposure(s, percent)
            if problem:
                return Err(RolloutValidationFailed(s.id, problem))
            if percent < s.exposure_percent:
                return Err(
                    RolloutValidationFailed(
                        s.id,
                        f"exposure cannot decrease ({s.exposure_percent:g}% -> {percent:g}%); "
                        "pause or halt the rollout instead",
                    )
                )
            if percent == s.exposure_percent:
                return Ok(None)
            updated = self._tracker.record(
                s,
                RolloutAction.UPDATE_ROLLOUT,
                previous_percent=s.exposure_percent,
                new_percent=percent,
                actor=actor,
                exposure_percent=percent,
                released_at=s.released_at
                or (self._tracker.now() if percent >= rules.MAX_PERCENT else None),
            )
            return Ok(
                _Plan(
                    remote=lambda: self._stores.set_exposure(s, percent),
                    updated=updated,
                    summary=f"rollout {s.exposure_percent:g}% -> {percent:g}%",
                )
            )

        return self._run(submission_id, "update rollout", (S.LIVE,), observed, decide)

    def pause(
        self,
        submission_id: str,
        reason: str,
        observed: ObservedState | None = None,
        *,
        actor: str | None = None,
    ) -> Result[Submission, RolloutError]:
        """Freeze exposure at its current value.

        Args:
            submission_id: LIVE submission below 100% exposure.
            reason: Why the rollout is paused. Required.
            observed: Optional precondition, checked like ``update_rollout``.
            actor: Operator recorded in the action history.
        """
        missing = self._reason(submission_id, reason, "pause")
        if missing:
            return Err(missing)

        def decide(s: Submission) -> Result[_Plan | None, RolloutError]:
            if not rules.supports_pause(s):
                return Err(
                    RolloutValidationFailed(s.id, "iOS manual releases cannot be paused")
                )
            if s.exposure_percent >= rules.MAX_PERCENT:
                return Err(
                    RolloutValidationFailed(s.id, "rollout is already at 100%; nothing to pause")
                )
            updated = self._tracker.record(
                s,
                RolloutAction.PAUSE,
                reason=reason,
                previous_percent=s.exposure_percent,
                new_percent=s.exposure_percent,
                actor=actor,
                status=S.PAUSED,
                status_reason=reason,
            )
            return Ok(
                _Plan(
                    remote=lambda: self._stores.pause(s, reason),
                    updated=updated,
                    summary=f"paused at {s.exposure_percent:g}% ({reason})",
                )
            )

        return self._run(submission_id, "pause", (S.LIVE,), observed, decide)

    def resume(
        self,
        submission_id: str,
        exposure_percent: float | None = None,
        observed: ObservedState | None = None,
        *,
        actor: str | None = None,
    ) -> Result[Submission, RolloutError]:
        """Return a paused rollout to LIVE.

        Resumes at the frozen percent unless ``exposure_percent`` names a
        negotiated value, which may be lower (Android only).
        """

        def decide(s: Submission) -> Result[_Plan | None, RolloutError]:
            target = s.exposure_percent if exposure_percent is None else exposure_percent
            if target != s.exposure_percent:
                problem = rules.validate_exposure(s, target)
                if problem:
                    return Err(RolloutValidationFailed(s.id, problem))
            updated = self._tracker.record(
                s,
                RolloutAction.RESUME,
                previous_percent=s.exposure_percent,
                new_percent=target,
                actor=actor,
                status=S.LIVE,
                status_reason=None,
                exposure_percent=target,
                released_at=s.released_at
                or (self._tracker.now() if target >= rules.MAX_PERCENT else None),
            )
            return Ok(
                _Plan(
                    remote=lambda: self._stores.resume(s, target),
                    updated=updated,
                    summary=f"resumed at {target:g}%",
                )
            )

        return self._run(submission_id, "resume", (S.PAUSED,), observed, decide)

    def halt(
        self,
        submission_id: str,
        reason: str,
        severity: Severity,
        observed: ObservedState | None = None,
        *,
        actor: str | None = None,
    ) -> Result[Submission, RolloutError]:
        """Stop the rollout for good. Only a new submission can ship again.

        Args:
            submission_id: LIVE or PAUSED submission below 100% exposure.
            reason: Why the rollout stops. Required.
            severity: Severity recorded with the halt.
            observed: Optional precondition, checked like ``update_rollout``.
            actor: Operator recorded in the action history.

        Returns:
            The HALTED submission, or the error that prevented the halt.
        """
        missing = self._reason(submission_id, reason, "halt")
        if missing:
            return Err(missing)

        def decide(s: Submission) -> Result[_Plan | None, RolloutError]:
            if s.exposure_percent >= rules.MAX_PERCENT:
                return Err(
                    RolloutValidationFailed(s.id, "rollout is already at 100%; nothing to halt")
                )
            updated = self._tracker.record(
                s,
                RolloutAction.HALT,
                reason=reason,
                previous_percent=s.exposure_percent,
                new_percent=s.exposure_percent,
                actor=actor,
                severity=severity,
                status=S.HALTED,
                status_reason=reason,
            )
            return Ok(
                _Plan(
                    remote=lambda: self._stores.halt(s, reason),
                    updated=updated,
                    summary=f"halted at {s.exposure_percent:g}% [{severity}] ({reason})",
                )
            )

        return self._run(submission_id, "halt", (S.LIVE, S.PAUSED), observed, decide)

    def complete_early(
        self,
        submission_id: str,
        observed: ObservedState | None = None,
        *,
        actor: str | None = None,
    ) -> Result[Submission, RolloutError]:
        """Release an iOS phased rollout to everyone before day 7."""

        def decide(s: Submission) -> Result[_Plan | None, RolloutError]:
            if not rules.supports_complete_early(s):
                return Err(
                    RolloutValidationFailed(
                        s.id, "complete-early only applies to iOS phased releases"
                    )
                )
            last_day = len(rules.IOS_PHASED_SCHEDULE)
            updated = self._tracker.record(
                s,
                RolloutAction.COMPLETE_EARLY,
                previous_percent=s.exposure_percent,
                new_percent=rules.MAX_PERCENT,
                actor=actor,
                status=S.LIVE,
                status_reason=None,
                exposure_percent=rules.MAX_PERCENT,
                rollout_day=last_day,
                released_at=s.released_at or self._tracker.now(),
            )
            return Ok(
                _Plan(
                    remote=lambda: self._stores.complete_phased_release(s),
                    updated=updated,
                    summary=f"completed early from day {s.rollout_day or 1} "
                    f"({s.exposure_percent:g}% -> 100%)",
                )
            )

        return self._run(submission_id, "complete early", (S.LIVE, S.PAUSED), observed, decide)

    # Names used by the external interface.
    pause_rollout = pause
    resume_rollout = resume
    halt_rollout = halt
