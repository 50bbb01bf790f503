"""Canonical provider status and the adapter contract."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from rr.core.result import Result
from rr.domain.errors import ProviderError, ProviderRequestFailed, ProviderTransientFailure
from rr.providers.http import HttpError

__all__ = [
    "CanonicalStatus",
    "QueueCheck",
    "BuildCheck",
    "ProviderStatusAdapter",
    "http_failure",
]


class CanonicalStatus(Enum):
    """Provider-agnostic status shared by every adapter and the reconciler."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class QueueCheck:
    status: CanonicalStatus
    run_id: str | None = None


@dataclass(frozen=True, slots=True)
class BuildCheck:
    status: CanonicalStatus


class ProviderStatusAdapter(Protocol):
    """Status checks for one CI/CD provider.

    Both calls block on the network and must honour their configured timeout.
    """

    def check_queue_status(
        self, tenant_id: str, queue_location: str
    ) -> Result[QueueCheck, ProviderError]: ...

    def check_build_status(
        self, tenant_id: str, run_id: str
    ) -> Result[BuildCheck, ProviderError]: ...


def http_failure(provider: str, error: HttpError) -> ProviderError:
    """Classify an HTTP error as transient (retry next pass) or not."""
    if error.is_transient:
        return ProviderTransientFailure(provider=provider, message=str(error), status=error.status)
    return ProviderRequestFailed(provider=provider, message=str(error), status=error.status)
