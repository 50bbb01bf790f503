from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from rr.domain.models import Platform, Submission, SubmissionStatus

ConflictKind = Literal["version", "exposure"]


@dataclass(frozen=True, slots=True)
class MissingField:
    build_id: str
    field: str


@dataclass(frozen=True, slots=True)
class UnsupportedProvider:
    provider: str


@dataclass(frozen=True, slots=True)
class ProviderTransientFailure:
    """Timeout, network error, HTTP 429 or 5xx. Retried on the next pass."""

    provider: str
    message: str
    status: int = 0


@dataclass(frozen=True, slots=True)
class ProviderRequestFailed:
    provider: str
    message: str
    status: int = 0


@dataclass(frozen=True, slots=True)
class ConflictDetected:
    """The caller acted on a stale view; ``submission`` is the authoritative record."""

    kind: ConflictKind
    submission_id: str
    expected: str
    current: str
    submission: Submission


@dataclass(frozen=True, slots=True)
class TerminalStateViolation:
    submission_id: str
    status: SubmissionStatus
    operation: str


@dataclass(frozen=True, slots=True)
class InvalidSubmissionState:
    submission_id: str
    status: SubmissionStatus
    operation: str
    allowed: tuple[SubmissionStatus, ...]
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class RolloutValidationFailed:
    submission_id: str
    message: str


@dataclass(frozen=True, slots=True)
class NotFound:
    entity: str
    key: str


@dataclass(frozen=True, slots=True)
class StoreCallFailed:
    platform: Platform
    operation: str
    message: str


@dataclass(frozen=True, slots=True)
class CallbackFailed:
    task_id: str
    message: str


ProviderError = UnsupportedProvider | ProviderTransientFailure | ProviderRequestFailed

BuildPollError = MissingField | ProviderError

SubmissionError = (
    NotFound
    | InvalidSubmissionState
    | TerminalStateViolation
    | RolloutValidationFailed
    | StoreCallFailed
)

RolloutError = SubmissionError | ConflictDetected

EngineError = BuildPollError | RolloutError | CallbackFailed
