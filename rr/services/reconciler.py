"""Build status reconciliation.

One pass covers one release and one phase:

- pending pass: PENDING builds, asked for their queue status
- running pass: RUNNING builds, asked for their run status

Provider checks run concurrently on a thread pool. The pass waits at most
``check_timeout`` for all of them; checks still unfinished then are reported
as transient failures and retried on the next pass. Results are applied one
build at a time under that build's record lock, re-checking that the build
is still in the status the pass selected it in. Task callbacks go out only
after every result of the pass has been applied.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
from enum import Enum

from rr.core.result import Err, Ok, Result
from rr.domain.errors import (
    BuildPollError,
    CallbackFailed,
    MissingField,
    ProviderError,
    ProviderTransientFailure,
)
from rr.domain.models import Build, ProviderType, UploadStatus, WorkflowStatus
from rr.output.console import ConsoleProtocol
from rr.output.errors import format_engine_error
from rr.providers.base import BuildCheck, CanonicalStatus, QueueCheck
from rr.providers.registry import ProviderRegistry
from rr.services.callbacks import CallbackDispatcher
from rr.store.state import StateStore

__all__ = [
    "PollPhase",
    "BuildPollResult",
    "PollSummary",
    "BuildStatusReconciler",
    "apply_queue_check",
    "apply_build_check",
    "poll_cycle",
]


class PollPhase(Enum):
    PENDING = "pending"
    RUNNING = "running"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class BuildPollResult:
    build_id: str
    previous_status: WorkflowStatus
    new_status: WorkflowStatus
    updated: bool
    run_id: str | None = None
    error: BuildPollError | None = None


def _empty_results() -> list[BuildPollResult]:
    return []


def _empty_callback_errors() -> list[CallbackFailed]:
    return []


@dataclass
class PollSummary:
    release_id: str
    phase: PollPhase
    processed: int = 0
    updated: int = 0
    callbacks: int = 0
    results: list[BuildPollResult] = field(default_factory=_empty_results)
    callback_errors: list[CallbackFailed] = field(default_factory=_empty_callback_errors)

    @property
    def errors(self) -> list[BuildPollResult]:
        return [r for r in self.results if r.error is not None]


def apply_queue_check(build: Build, check: QueueCheck) -> Build | None:
    """Transition for a PENDING build. None means leave it as is.

    A queue check that already reports ``completed`` only proves the job
    started; completion is confirmed by the run check on a later pass.
    """
    match check.status:
        case CanonicalStatus.RUNNING | CanonicalStatus.COMPLETED:
            run_id = check.run_id or build.run_id
            if run_id is None:
                return None
            return replace(build, workflow_status=WorkflowStatus.RUNNING, run_id=run_id)
        case CanonicalStatus.CANCELLED:
            return replace(
                build, workflow_status=WorkflowStatus.FAILED, upload_status=UploadStatus.FAILED
            )
        case CanonicalStatus.PENDING | CanonicalStatus.FAILED:
            return None


def apply_build_check(build: Build, check: BuildCheck) -> Build | None:
    """Transition for a RUNNING build. None means leave it as is.

    Completion leaves ``upload_status`` alone; the artifact upload path owns it.
    """
    match check.status:
        case CanonicalStatus.COMPLETED:
            return replace(build, workflow_status=WorkflowStatus.COMPLETED)
        case CanonicalStatus.FAILED:
            return replace(
                build, workflow_status=WorkflowStatus.FAILED, upload_status=UploadStatus.FAILED
            )
        case CanonicalStatus.RUNNING | CanonicalStatus.PENDING | CanonicalStatus.CANCELLED:
            return None


type _Check = Result[QueueCheck, ProviderError] | Result[BuildCheck, ProviderError]


class BuildStatusReconciler:
    """Moves builds through their workflow states from provider reports.

    Args:
        store: Record store holding the builds.
        registry: Status adapter per provider type.
        dispatcher: Sends one task callback per changed task after a pass.
        console: Output for pass summaries and per-build failures.
        max_workers: Provider checks run at once.
        check_timeout: Seconds a pass waits for all of its checks.
    """

    def __init__(
        self,
        store: StateStore,
        registry: ProviderRegistry,
        dispatcher: CallbackDispatcher,
        console: ConsoleProtocol,
        *,
        max_workers: int = 4,
        check_timeout: float = 30.0,
    ) -> None:
        self._store = store
        self._registry = registry
        self._dispatcher = dispatcher
        self._console = console
        self._max_workers = max_workers
        self._check_timeout = check_timeout

    def poll_pending_workflows(self, release_id: str, tenant_id: str) -> PollSummary:
        """Advance PENDING builds of a release from their queue status.

        Args:
            release_id: Release whose builds are polled.
            tenant_id: Tenant whose CI/CD credentials are used.

        Returns:
            Counts of processed and updated builds and callbacks sent, with
            one result per build. Per-build failures are reported in the
            results; they never abort the pass.
        """
        return self._poll(release_id, tenant_id, PollPhase.PENDING)

    def poll_running_workflows(self, release_id: str, tenant_id: str) -> PollSummary:
        """Advance RUNNING builds of a release from their run status.

        Same contract as ``poll_pending_workflows``.
        """
        return self._poll(release_id, tenant_id, PollPhase.RUNNING)

    # -------------------------------------------------------------------------

    def _handle(
        self, build: Build, phase: PollPhase
    ) -> Result[tuple[ProviderType, str], MissingField]:
        """Provider and queue/run handle of a build, or the field it lacks."""
        if phase is PollPhase.PENDING:
            handle, field_name = build.queue_location, "queue_location"
        else:
            handle, field_name = build.run_id, "run_id"
        if build.provider_type is None:
            return Err(MissingField(build_id=build.id, field="provider_type"))
        if not handle:
            return Err(MissingField(build_id=build.id, field=field_name))
        return Ok((build.provider_type, handle))

    def _check(
        self, phase: PollPhase, tenant_id: str, provider_type: ProviderType, handle: str
    ) -> _Check:
        adapter = self._registry.adapter_for(provider_type)
        if phase is PollPhase.PENDING:
            return adapter.check_queue_status(tenant_id, handle)
        return adapter.check_build_status(tenant_id, handle)

    def _outcome(
        self, future: Future[_Check], finished: set[Future[_Check]], provider_type: ProviderType
    ) -> _Check:
        if future in finished:
            return future.result()
        return Err(
            ProviderTransientFailure(
                provider=str(provider_type),
                message=f"status check timed out after {self._check_timeout:g}s",
            )
        )

    def _apply(self, build: Build, check: QueueCheck | BuildCheck) -> BuildPollResult:
        expected = build.workflow_status

        def mutate(current: Build) -> Build | None:
            # Another pass may have moved the build since it was selected.
            if current.workflow_status is not expected:
                return None
            if isinstance(check, QueueCheck):
                return apply_queue_check(current, check)
            return apply_build_check(current, check)

        changed = self._store.update_build(build.id, mutate)
        if changed is None:
            return BuildPollResult(build.id, expected, expected, updated=False, run_id=build.run_id)
        _, after = changed
        return BuildPollResult(
            build.id, expected, after.workflow_status, updated=True, run_id=after.run_id
        )

    def _failed(self, build: Build, error: BuildPollError) -> BuildPollResult:
        self._console.warning(format_engine_error(error))
        status = build.workflow_status
        return BuildPollResult(
            build.id, status, status, updated=False, run_id=build.run_id, error=error
        )

    def _poll(self, release_id: str, tenant_id: str, phase: PollPhase) -> PollSummary:
        status = WorkflowStatus.PENDING if phase is PollPhase.PENDING else WorkflowStatus.RUNNING
        builds = self._store.find_builds(release_id, status)
        summary = PollSummary(release_id=release_id, phase=phase, processed=len(builds))

        ready: list[tuple[Build, ProviderType, str]] = []
        for build in builds:
            match self._handle(build, phase):
                case Ok((provider_type, handle)):
                    ready.append((build, provider_type, handle))
                case Err(error):
                    summary.results.append(self._failed(build, error))

        if ready:
            executor = ThreadPoolExecutor(
                max_workers=min(self._max_workers, len(ready)), thread_name_prefix="rr-poll"
            )
            try:
                submitted: list[tuple[Build, ProviderType, Future[_Check]]] = [
                    (b, p, executor.submit(self._check, phase, tenant_id, p, h))
                    for b, p, h in ready
                ]
                # One deadline for the whole pass, queued checks included.
                finished, _ = wait([f for _, _, f in submitted], timeout=self._check_timeout)
                for build, provider_type, future in submitted:
                    match self._outcome(future, finished, provider_type):
                        case Ok(check):
                            summary.results.append(self._apply(build, check))
                        case Err(error):
                            summary.results.append(self._failed(build, error))
            finally:
                # Hung provider calls are abandoned, not waited on.
                executor.shutdown(wait=False, cancel_futures=True)

        summary.updated = sum(1 for r in summary.results if r.updated)
        self._notify(summary)
        self._console.dim(
            f"{phase} poll release={release_id}: processed={summary.processed} "
            f"updated={summary.updated} callbacks={summary.callbacks}"
        )
        return summary

    def _notify(self, summary: PollSummary) -> None:
        task_ids: list[str] = []
        for result in summary.results:
            if not result.updated:
                continue
            build = self._store.get_build(result.build_id)
            if build is not None and build.task_id:
                task_ids.append(build.task_id)
        report = self._dispatcher.dispatch(task_ids)
        summary.callbacks = len(report.sent) + len(report.failed)
        summary.callback_errors = report.failed


def poll_cycle(
    reconciler: BuildStatusReconciler, release_id: str, tenant_id: str
) -> tuple[PollSummary, PollSummary]:
    """Pending pass then running pass, as the scheduler runs them."""
    return (
        reconciler.poll_pending_workflows(release_id, tenant_id),
        reconciler.poll_running_workflows(release_id, tenant_id),
    )

