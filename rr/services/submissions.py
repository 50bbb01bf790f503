"""Store submission lifecycle and release-level distribution status.

Submission transitions:

    PENDING -> IN_REVIEW -> APPROVED -> LIVE <-> PAUSED
                   |            |        |
                   +-> REJECTED +        +-> HALTED

PENDING, IN_REVIEW and APPROVED may also be CANCELLED. HALTED, REJECTED and
CANCELLED are final for that record; shipping again takes a resubmission,
which creates a new record and marks the old one superseded so its history
stays intact.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from rr.core.result import Err, Ok, Result
from rr.domain import rules
from rr.domain.distribution import DistributionSnapshot, latest_by_platform, snapshot
from rr.domain.errors import (
    InvalidSubmissionState,
    NotFound,
    RolloutValidationFailed,
    SubmissionError,
    TerminalStateViolation,
)
from rr.domain.models import (
    ActionRecord,
    Distribution,
    Platform,
    RolloutAction,
    Severity,
    Submission,
    SubmissionStatus,
)
from rr.output.console import ConsoleProtocol
from rr.services.stores import StoreClient
from rr.store.state import StateStore

__all__ = ["SubmissionTracker", "Clock", "utc_now"]

Clock = Callable[[], datetime]

S = SubmissionStatus

_REJECTABLE = (S.IN_REVIEW, S.APPROVED)
_CANCELLABLE = (S.PENDING, S.IN_REVIEW, S.APPROVED)
_RESUBMITTABLE = (S.LIVE, S.PAUSED, S.HALTED, S.REJECTED, S.CANCELLED)
_RELEASED = (S.LIVE, S.PAUSED)
_NEEDS_REASON = (S.REJECTED, S.HALTED)

# Status changes a store report may carry.
_STORE_TRANSITIONS: dict[SubmissionStatus, frozenset[SubmissionStatus]] = {
    S.PENDING: frozenset({S.IN_REVIEW}),
    S.IN_REVIEW: frozenset({S.APPROVED, S.REJECTED, S.LIVE}),
    S.APPROVED: frozenset({S.LIVE, S.REJECTED}),
    S.LIVE: frozenset({S.PAUSED, S.HALTED}),
    S.PAUSED: frozenset({S.LIVE, S.HALTED}),
}


def utc_now() -> datetime:
    return datetime.now(UTC)


def _new_submission_id() -> str:
    return f"sub_{uuid.uuid4().hex[:12]}"


def submission_lock(submission_id: str) -> str:
    return f"submission:{submission_id}"


class SubmissionTracker:
    def __init__(
        self,
        store: StateStore,
        stores: StoreClient,
        console: ConsoleProtocol,
        *,
        clock: Clock = utc_now,
        new_id: Callable[[], str] = _new_submission_id,
    ) -> None:
        self._store = store
        self._stores = stores
        self._console = console
        self._clock = clock
        self._new_id = new_id

    # -- helpers shared with the rollout controller ---------------------------

    def now(self) -> str:
        return self._clock().isoformat()

    def record(
        self,
        submission: Submission,
        action: RolloutAction,
        *,
        reason: str | None = None,
        previous_percent: float | None = None,
        new_percent: float | None = None,
        actor: str | None = None,
        severity: Severity | None = None,
        **changes: Any,
    ) -> Submission:
        """Return ``submission`` with ``changes`` applied and an audit entry appended."""
        entry = ActionRecord(
            action=action,
            at=self.now(),
            reason=reason,
            previous_percent=previous_percent,
            new_percent=new_percent,
            actor=actor,
            severity=severity,
        )
        return replace(submission, history=(*submission.history, entry), **changes)

    def refresh(self, release_id: str) -> DistributionSnapshot | None:
        """Recompute the release's distribution status after a mutation."""
        result = self.get_distribution_status(release_id)
        if isinstance(result, Err):
            return None
        self._console.dim(
            f"distribution release={release_id}: {result.value.release_status} "
            f"progress={result.value.overall_progress:g}%"
        )
        return result.value

    def _load(self, submission_id: str) -> Result[Submission, NotFound]:
        submission = self._store.get_submission(submission_id)
        if submission is None:
            return Err(NotFound("submission", submission_id))
        return Ok(submission)

    def _require(
        self,
        submission: Submission,
        operation: str,
        allowed: Iterable[SubmissionStatus],
        hint: str | None = None,
    ) -> Result[Submission, SubmissionError]:
        allowed = tuple(allowed)
        if submission.superseded_by is not None:
            return Err(
                InvalidSubmissionState(
                    submission.id,
                    submission.status,
                    operation,
                    allowed,
                    hint=f"superseded by {submission.superseded_by}",
                )
            )
        if submission.status in allowed:
            return Ok(submission)
        if submission.status is S.HALTED:
            return Err(TerminalStateViolation(submission.id, submission.status, operation))
        return Err(
            InvalidSubmissionState(submission.id, submission.status, operation, allowed, hint)
        )

    def _commit(self, submission: Submission) -> Submission:
        self._store.save_submission(submission)
        self.refresh(submission.release_id)
        return submission

    # -- distribution --------------------------------------------------------

    def configure_distribution(
        self, release_id: str, tenant_id: str, platforms: Iterable[Platform]
    ) -> Distribution:
        """Declare which platforms a release ships to (idempotent)."""
        distribution = Distribution(
            release_id=release_id,
            tenant_id=tenant_id,
            platforms=tuple(dict.fromkeys(platforms)),
        )
        self._store.save_distribution(distribution)
        return distribution

    def get_distribution_status(self, release_id: str) -> Result[DistributionSnapshot, NotFound]:
        """Derive the release's distribution status from its current submissions.

        Returns:
            The release status, per-platform rows and overall progress, or
            ``NotFound`` when no distribution was configured for the release.
        """
        distribution = self._store.get_distribution(release_id)
        if distribution is None:
            return Err(NotFound("distribution", release_id))
        return Ok(snapshot(distribution, self._store.submissions_for(release_id)))

    def current_submission(self, release_id: str, platform: Platform) -> Submission | None:
        return latest_by_platform(self._store.submissions_for(release_id)).get(platform)

    # -- lifecycle -----------------------------------------------------------

    def _send_to_store(self, submission: Submission) -> Result[Submission, SubmissionError]:
        """Submit a PENDING record; it moves to IN_REVIEW once the store accepts it."""
        sent = self._stores.submit(submission)
        if isinstance(sent, Err):
            self._console.warning(f"{submission.id}: store submit failed, submission stays PENDING")
            return sent
        updated = self.record(
            submission, RolloutAction.SUBMIT, status=S.IN_REVIEW, submitted_at=self.now()
        )
        return Ok(self._commit(updated))

    def submit(
        self,
        release_id: str,
        platform: Platform,
        version_name: str,
        *,
        phased_release: bool = True,
    ) -> Result[Submission, SubmissionError]:
        """Submit the release's build for ``platform`` to its store.

        Creates the PENDING record on first use, or retries a record whose
        earlier store call failed.

        Args:
            release_id: Release with a configured distribution.
            platform: One of the distribution's platforms.
            version_name: Version shown in the store.
            phased_release: iOS only. False releases to everyone at once.

        Returns:
            The submission, IN_REVIEW once the store accepted it. A failed
            store call leaves the record PENDING and returns the
            ``StoreCallFailed``.
        """
        distribution = self._store.get_distribution(release_id)
        if distribution is None:
            return Err(NotFound("distribution", release_id))
        if platform not in distribution.platforms:
            return Err(NotFound("platform in distribution", f"{release_id}/{platform}"))

        with self._store.locked(f"platform:{release_id}:{platform}"):
            current = self.current_submission(release_id, platform)
            if current is None:
                current = Submission(
                    id=self._new_id(),
                    release_id=release_id,
                    platform=platform,
                    version_name=version_name,
                    phased_release=phased_release,
                )
                self._store.save_submission(current)
            with self._store.locked(submission_lock(current.id)):
                current = self._store.get_submission(current.id) or current
                checked = self._require(
                    current, "submit", (S.PENDING,), hint="use resubmit to ship a new version"
                )
                if isinstance(checked, Err):
                    return checked
                return self._send_to_store(checked.value)

    def _transition(
        self,
        submission_id: str,
        operation: str,
        allowed: tuple[SubmissionStatus, ...],
        build: Callable[[Submission], Result[Submission, SubmissionError]],
        hint: str | None = None,
    ) -> Result[Submission, SubmissionError]:
        with self._store.locked(submission_lock(submission_id)):
            loaded = self._load(submission_id)
            if isinstance(loaded, Err):
                return loaded
            checked = self._require(loaded.value, operation, allowed, hint)
            if isinstance(checked, Err):
                return checked
            built = build(checked.value)
            if isinstance(built, Err):
                return built
            return Ok(self._commit(built.value))

    def mark_approved(self, submission_id: str) -> Result[Submission, SubmissionError]:
        return self._transition(
            submission_id,
            "approve",
            (S.IN_REVIEW,),
            lambda s: Ok(self.record(s, RolloutAction.APPROVE, status=S.APPROVED)),
        )

    def mark_live(
        self, submission_id: str, exposure_percent: float | None = None
    ) -> Result[Submission, SubmissionError]:
        """Release an approved submission.

        Android starts at ``exposure_percent`` (default 100). iOS phased starts
        at day 1 of the store schedule; iOS manual goes straight to 100.
        """

        def build(s: Submission) -> Result[Submission, SubmissionError]:
            if exposure_percent is not None:
                problem = rules.validate_exposure(s, exposure_percent)
                if problem:
                    return Err(RolloutValidationFailed(s.id, problem))
            exposure = rules.initial_live_exposure(s, exposure_percent)
            now = self.now()
            return Ok(
                self.record(
                    s,
                    RolloutAction.GO_LIVE,
                    previous_percent=s.exposure_percent,
                    new_percent=exposure,
                    status=S.LIVE,
                    exposure_percent=exposure,
                    rollout_day=rules.rollout_day_for(exposure) if rules.is_phased(s) else None,
                    released_at=now if exposure >= rules.MAX_PERCENT else s.released_at,
                )
            )

        return self._transition(submission_id, "go live", (S.APPROVED,), build)

    def mark_rejected(self, submission_id: str, reason: str) -> Result[Submission, SubmissionError]:
        """Record a store rejection of a submission still under review.

        A submission that already went live is not rejected in place; it is
        replaced through ``resubmit``.
        """
        if not reason.strip():
            return Err(RolloutValidationFailed(submission_id, "a rejection reason is required"))
        return self._transition(
            submission_id,
            "reject",
            _REJECTABLE,
            lambda s: Ok(
                self.record(
                    s, RolloutAction.REJECT, reason=reason, status=S.REJECTED, status_reason=reason
                )
            ),
            hint="a live submission is replaced with: rr submission resubmit",
        )

    def cancel(self, submission_id: str, reason: str) -> Result[Submission, SubmissionError]:
        if not reason.strip():
            return Err(RolloutValidationFailed(submission_id, "a cancellation reason is required"))
        return self._transition(
            submission_id,
            "cancel",
            _CANCELLABLE,
            lambda s: Ok(
                self.record(
                    s, RolloutAction.CANCEL, reason=reason, status=S.CANCELLED, status_reason=reason
                )
            ),
        )

    def resubmit(
        self,
        submission_id: str,
        version_name: str,
        *,
        phased_release: bool | None = None,
        reason: str | None = None,
    ) -> Result[Submission, SubmissionError]:
        """Replace a submission with a new record for ``version_name``.

        The old record is marked superseded and otherwise left untouched. The
        new record is then sent to the store; if that call fails it stays
        PENDING and can be retried with ``submit``.
        """
        with self._store.locked(submission_lock(submission_id)):
            loaded = self._load(submission_id)
            if isinstance(loaded, Err):
                return loaded
            old = loaded.value
            checked = self._require(
                old, "resubmit", _RESUBMITTABLE, hint="cancel the submission first"
            )
            if isinstance(checked, Err):
                return checked

            fresh = Submission(
                id=self._new_id(),
                release_id=old.release_id,
                platform=old.platform,
                version_name=version_name,
                phased_release=old.phased_release if phased_release is None else phased_release,
            )
            superseded = self.record(
                old, RolloutAction.RESUBMIT, reason=reason, superseded_by=fresh.id
            )
            self._store.save_submissions(superseded, fresh)

        with self._store.locked(submission_lock(fresh.id)):
            return self._send_to_store(fresh)

    def apply_store_update(
        self,
        submission_id: str,
        *,
        status: SubmissionStatus | None = None,
        exposure_percent: float | None = None,
        rollout_day: int | None = None,
        reason: str | None = None,
        severity: Severity = Severity.HIGH,
    ) -> Result[Submission, SubmissionError]:
        """Ingest a status report from store polling.

        A report may carry a review outcome, a release, a phased-release day
        or a halt. The submission invariants hold for whatever the store
        says: exposure never decreases, only a LIVE submission may be at
        100%, and nothing before release has any exposure.

        Args:
            submission_id: Submission the report is about.
            status: Status reported by the store, None to keep the current one.
            exposure_percent: Reported exposure. Going LIVE without one uses
                the platform's starting exposure (iOS manual is always 100).
            rollout_day: iOS phased release day (1-7); sets the exposure when
                no exposure is reported.
            reason: Required when the store reports a rejection or a halt.
            severity: Recorded with a store-reported halt.

        Returns:
            The updated submission, or the reason the report was refused.
        """

        def build(s: Submission) -> Result[Submission, SubmissionError]:
            new_status = status or s.status
            if new_status is not s.status and new_status not in _STORE_TRANSITIONS.get(
                s.status, frozenset()
            ):
                return Err(
                    InvalidSubmissionState(
                        s.id,
                        s.status,
                        f"move to {new_status}",
                        tuple(_STORE_TRANSITIONS.get(s.status, ())),
                    )
                )
            halting = new_status is S.HALTED
            if new_status is not s.status and new_status in _NEEDS_REASON:
                if not (reason and reason.strip()):
                    return Err(
                        RolloutValidationFailed(
                            s.id, f"a {new_status} report from the store needs a reason"
                        )
                    )

            exposure = exposure_percent
            day = rollout_day
            if rules.is_phased(s):
                if exposure is None and day is not None:
                    if not 1 <= day <= len(rules.IOS_PHASED_SCHEDULE):
                        return Err(
                            RolloutValidationFailed(s.id, f"rollout day {day} is out of range")
                        )
                    exposure = rules.IOS_PHASED_SCHEDULE[day - 1]

            if new_status is S.LIVE and s.status not in _RELEASED:
                if exposure is None or rules.is_ios_manual(s):
                    exposure = rules.initial_live_exposure(s, exposure)

            if rules.is_phased(s) and exposure is not None and day is None:
                day = rules.rollout_day_for(exposure)

            if exposure is None:
                exposure = s.exposure_percent
            if not rules.MIN_PERCENT <= exposure <= rules.MAX_PERCENT:
                return Err(RolloutValidationFailed(s.id, f"exposure {exposure:g}% is out of range"))
            if exposure < s.exposure_percent:
                return Err(
                    RolloutValidationFailed(
                        s.id,
                        f"store reported {exposure:g}% below current {s.exposure_percent:g}%",
                    )
                )

            if exposure >= rules.MAX_PERCENT:
                if new_status is S.PAUSED:
                    new_status = S.LIVE
                if new_status is not S.LIVE:
                    return Err(
                        InvalidSubmissionState(
                            s.id,
                            s.status,
                            f"record 100% exposure as {new_status}",
                            (S.LIVE,),
                            hint="only a LIVE submission can be at 100%",
                        )
                    )
            if exposure > rules.MIN_PERCENT and new_status not in (*_RELEASED, S.HALTED):
                return Err(
                    RolloutValidationFailed(
                        s.id, f"store reported {exposure:g}% for a {new_status} submission"
                    )
                )

            now = self.now()
            return Ok(
                self.record(
                    s,
                    RolloutAction.STORE_UPDATE,
                    reason=reason,
                    previous_percent=s.exposure_percent,
                    new_percent=exposure,
                    severity=severity if halting else None,
                    status=new_status,
                    exposure_percent=exposure,
                    rollout_day=day if day is not None else s.rollout_day,
                    submitted_at=s.submitted_at or (now if new_status is not S.PENDING else None),
                    released_at=s.released_at
                    or (now if exposure >= rules.MAX_PERCENT and new_status is S.LIVE else None),
                    status_reason=reason if new_status in _NEEDS_REASON else s.status_reason,
                )
            )

        return self._transition(
            submission_id, "apply store update", tuple(_STORE_TRANSITIONS), build
        )

    def get_submission(self, submission_id: str) -> Result[Submission, NotFound]:
        return self._load(submission_id)
