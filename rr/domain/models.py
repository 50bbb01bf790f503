"""Entities and closed vocabularies of the reconciliation engine.

All entities are immutable; owners derive a new value with
``dataclasses.replace`` and hand it back to the state store.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Platform(Enum):
    ANDROID = "ANDROID"
    IOS = "IOS"

    def __str__(self) -> str:
        return self.value


class ProviderType(Enum):
    """CI/CD provider a build was triggered on.

    CIRCLE_CI and GITLAB_CI are recognized but have no status adapter yet.
    """

    JENKINS = "JENKINS"
    GITHUB_ACTIONS = "GITHUB_ACTIONS"
    CIRCLE_CI = "CIRCLE_CI"
    GITLAB_CI = "GITLAB_CI"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, raw: str) -> ProviderType | None:
        """Parse a provider name case-insensitively (``github-actions`` works too)."""
        key = raw.strip().upper().replace("-", "_")
        for member in cls:
            if member.value == key:
                return member
        return None


class WorkflowStatus(Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    def __str__(self) -> str:
        return self.value


class UploadStatus(Enum):
    PENDING = "PENDING"
    UPLOADING = "UPLOADING"
    UPLOADED = "UPLOADED"
    FAILED = "FAILED"

    def __str__(self) -> str:
        return self.value


class SubmissionStatus(Enum):
    PENDING = "PENDING"
    IN_REVIEW = "IN_REVIEW"
    APPROVED = "APPROVED"
    LIVE = "LIVE"
    PAUSED = "PAUSED"
    HALTED = "HALTED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"

    def __str__(self) -> str:
        return self.value

    @property
    def is_final(self) -> bool:
        """No further transition for this record; only a resubmission moves on."""
        return self in _FINAL_SUBMISSION_STATUSES


_FINAL_SUBMISSION_STATUSES = frozenset(
    {SubmissionStatus.HALTED, SubmissionStatus.REJECTED, SubmissionStatus.CANCELLED}
)


class DistributionStatus(Enum):
    PENDING = "PENDING"
    PARTIALLY_SUBMITTED = "PARTIALLY_SUBMITTED"
    SUBMITTED = "SUBMITTED"
    PARTIALLY_RELEASED = "PARTIALLY_RELEASED"
    RELEASED = "RELEASED"

    def __str__(self) -> str:
        return self.value


class Severity(Enum):
    """Severity attached to a halt."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"

    def __str__(self) -> str:
        return self.value


class RolloutAction(Enum):
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    GO_LIVE = "GO_LIVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
    RESUBMIT = "RESUBMIT"
    STORE_UPDATE = "STORE_UPDATE"
    UPDATE_ROLLOUT = "UPDATE_ROLLOUT"
    PAUSE = "PAUSE"
    RESUME = "RESUME"
    HALT = "HALT"
    COMPLETE_EARLY = "COMPLETE_EARLY"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Build:
    """One CI/CD build per (release, platform, target).

    Attributes:
        queue_location: Provider handle assigned at trigger time
        run_id: Set once the provider confirms the job started
        task_id: Weak back-reference to a release task (lookup only)
    """

    id: str
    release_id: str
    platform: Platform
    target: str
    provider_type: ProviderType | None
    queue_location: str | None = None
    run_id: str | None = None
    workflow_status: WorkflowStatus = WorkflowStatus.PENDING
    upload_status: UploadStatus = UploadStatus.PENDING
    task_id: str | None = None


@dataclass(frozen=True, slots=True)
class ActionRecord:
    """One entry of a submission's audit trail."""

    action: RolloutAction
    at: str
    reason: str | None = None
    previous_percent: float | None = None
    new_percent: float | None = None
    actor: str | None = None
    severity: Severity | None = None


@dataclass(frozen=True, slots=True)
class Submission:
    """Store submission for one (release, platform).

    ``superseded_by`` points at the resubmission that replaced this record.
    A superseded record is kept for its audit trail and never mutated again.
    """

    id: str
    release_id: str
    platform: Platform
    version_name: str
    status: SubmissionStatus = SubmissionStatus.PENDING
    exposure_percent: float = 0.0
    phased_release: bool = True
    rollout_day: int | None = None
    submitted_at: str | None = None
    released_at: str | None = None
    status_reason: str | None = None
    superseded_by: str | None = None
    history: tuple[ActionRecord, ...] = ()

    @property
    def is_superseded(self) -> bool:
        return self.superseded_by is not None


@dataclass(frozen=True, slots=True)
class Distribution:
    """Release-level distribution: which platforms the release ships to."""

    release_id: str
    tenant_id: str
    platforms: tuple[Platform, ...]
