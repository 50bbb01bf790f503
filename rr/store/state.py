"""Build, submission and distribution records.

``StateStore`` keeps records in memory and hands out per-record locks so that
applying a provider result or a rollout mutation is an atomic
read-check-write for that record. ``JsonFileStore`` adds persistence to a
single JSON document shared by every ``rr`` process that points at it: each
mutation and each ``locked()`` section runs under an exclusive lock on a
sidecar ``<state>.lock`` file, starts from the records last saved on disk and
rewrites the document atomically before the lock is released.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from pathlib import Path

from rr.core.result import Err, Ok, Result
from rr.core.structured import (
    StrDict,
    as_obj_list,
    as_str_dict,
    get_bool,
    get_float,
    get_int,
    get_list,
    get_str,
)
from rr.domain.models import (
    ActionRecord,
    Build,
    Distribution,
    Platform,
    ProviderType,
    RolloutAction,
    Severity,
    Submission,
    SubmissionStatus,
    UploadStatus,
    WorkflowStatus,
)

__all__ = [
    "StateStore",
    "JsonFileStore",
    "StateError",
    "StateReadError",
    "atomic_write_text",
    "exclusive_file_lock",
]

STATE_VERSION = 1


@dataclass(frozen=True, slots=True)
class StateError:
    """The state file cannot be read or does not describe valid records."""

    message: str
    path: Path | None = None


class StateReadError(Exception):
    """The state file became unreadable while the store was in use."""

    def __init__(self, error: StateError) -> None:
        super().__init__(error.message)
        self.error = error


class _Invalid(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class _Records:
    builds: list[Build]
    submissions: list[Submission]
    distributions: list[Distribution]


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Write text to path atomically using temp file + replace."""
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


@contextmanager
def exclusive_file_lock(path: Path) -> Iterator[None]:
    """Hold an OS-level exclusive lock on ``path`` (created if missing).

    Blocks until the lock is free. Separate opens conflict even inside one
    process, so threads are serialized too.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a+b") as handle:
        if os.name == "nt":
            import msvcrt

            handle.seek(0)
            msvcrt.locking(handle.fileno(), msvcrt.LK_LOCK, 1)
            try:
                yield
            finally:
                handle.seek(0)
                msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
            return

        import fcntl

        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


class StateStore:
    """In-memory record store with per-record locking."""

    def __init__(
        self,
        builds: Iterable[Build] = (),
        submissions: Iterable[Submission] = (),
        distributions: Iterable[Distribution] = (),
    ) -> None:
        self._lock = threading.Lock()
        self._record_locks: dict[str, threading.RLock] = {}
        self._builds: dict[str, Build] = {}
        self._submissions: dict[str, Submission] = {}
        self._distributions: dict[str, Distribution] = {}
        self._replace_all(_Records(list(builds), list(submissions), list(distributions)))

    def _replace_all(self, records: _Records) -> None:
        with self._lock:
            self._builds = {b.id: b for b in records.builds}
            self._submissions = {s.id: s for s in records.submissions}
            self._distributions = {d.release_id: d for d in records.distributions}

    # -- locking -------------------------------------------------------------

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Scope of one read-check-write. Durable subclasses lock storage here."""
        yield

    @contextmanager
    def locked(self, key: str) -> Iterator[None]:
        """Hold the lock for one record (``build:<id>`` / ``submission:<id>``)."""
        with self._transaction():
            with self._lock:
                lock = self._record_locks.setdefault(key, threading.RLock())
            with lock:
                yield

    # -- builds --------------------------------------------------------------

    def get_build(self, build_id: str) -> Build | None:
        with self._lock:
            return self._builds.get(build_id)

    def add_build(self, build: Build) -> None:
        with self._transaction():
            with self._lock:
                self._builds[build.id] = build
            self._persist()

    def find_builds(self, release_id: str, status: WorkflowStatus) -> list[Build]:
        with self._lock:
            return [
                b
                for b in self._builds.values()
                if b.release_id == release_id and b.workflow_status is status
            ]

    def update_build(
        self, build_id: str, mutate: Callable[[Build], Build | None]
    ) -> tuple[Build, Build] | None:
        """Apply ``mutate`` to a build under its record lock.

        ``mutate`` returns the replacement, or None to leave the build as is.
        Returns ``(before, after)`` when a change was saved.
        """
        with self.locked(f"build:{build_id}"):
            with self._lock:
                current = self._builds.get(build_id)
            if current is None:
                return None
            updated = mutate(current)
            if updated is None or updated == current:
                return None
            with self._lock:
                self._builds[build_id] = updated
            self._persist()
            return current, updated

    # -- submissions ---------------------------------------------------------

    def get_submission(self, submission_id: str) -> Submission | None:
        with self._lock:
            return self._submissions.get(submission_id)

    def save_submission(self, submission: Submission) -> None:
        self.save_submissions(submission)

    def save_submissions(self, *submissions: Submission) -> None:
        """Save several submissions in one write (a resubmission touches two)."""
        with self._transaction():
            with self._lock:
                for submission in submissions:
                    self._submissions[submission.id] = submission
            self._persist()

    def submissions_for(self, release_id: str) -> list[Submission]:
        with self._lock:
            return [s for s in self._submissions.values() if s.release_id == release_id]

    # -- distributions -------------------------------------------------------

    def get_distribution(self, release_id: str) -> Distribution | None:
        with self._lock:
            return self._distributions.get(release_id)

    def save_distribution(self, distribution: Distribution) -> None:
        with self._transaction():
            with self._lock:
                self._distributions[distribution.release_id] = distribution
            self._persist()

    # -- persistence ---------------------------------------------------------

    def _persist(self) -> None:
        """Hook for durable subclasses. Memory-only by default."""

    def to_dict(self) -> StrDict:
        with self._lock:
            return {
                "version": STATE_VERSION,
                "distributions": [_distribution_to_dict(d) for d in self._distributions.values()],
                "builds": [_build_to_dict(b) for b in self._builds.values()],
                "submissions": [_submission_to_dict(s) for s in self._submissions.values()],
            }


class JsonFileStore(StateStore):
    """State store persisted to a single JSON file."""

    def __init__(
        self,
        path: Path,
        builds: Iterable[Build] = (),
        submissions: Iterable[Submission] = (),
        distributions: Iterable[Distribution] = (),
    ) -> None:
        super().__init__(builds, submissions, distributions)
        self.path = path
        self.lock_path = path.with_name(f"{path.name}.lock")
        self._held = threading.local()

    @classmethod
    def load(cls, path: Path) -> Result[JsonFileStore, StateError]:
        """Load the store from ``path``. A missing file is an empty store."""
        if not path.exists():
            return Ok(cls(path))
        match _read_records(path):
            case Err() as err:
                return err
            case Ok(records):
                return Ok(cls(path, records.builds, records.submissions, records.distributions))

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Hold the state file lock, working on the records last saved to disk.

        Re-entrant per thread; only the outermost section takes the lock and
        re-reads the file.

        Raises:
            StateReadError: The file was replaced by one that cannot be read.
        """
        depth: int = getattr(self._held, "depth", 0)
        with ExitStack() as stack:
            if depth == 0:
                stack.enter_context(exclusive_file_lock(self.lock_path))
                self._reload()
            self._held.depth = depth + 1
            try:
                yield
            finally:
                self._held.depth = depth

    def _reload(self) -> None:
        if not self.path.exists():
            return
        match _read_records(self.path):
            case Err(error):
                raise StateReadError(error)
            case Ok(records):
                self._replace_all(records)

    def _persist(self) -> None:
        atomic_write_text(self.path, json.dumps(self.to_dict(), indent=2) + "\n")


# -----------------------------------------------------------------------------
# Codec
# -----------------------------------------------------------------------------


def _read_records(path: Path) -> Result[_Records, StateError]:
    try:
        data = as_str_dict(json.loads(path.read_text(encoding="utf-8")))
    except json.JSONDecodeError as e:
        return Err(StateError(f"Invalid JSON: {e}", path=path))
    except (OSError, UnicodeDecodeError) as e:
        return Err(StateError(f"Error reading state: {e}", path=path))
    if data is None:
        return Err(StateError("State root must be a JSON object", path=path))

    try:
        return Ok(
            _Records(
                builds=[_build_from_dict(o) for o in _records(data, "builds")],
                submissions=[_submission_from_dict(o) for o in _records(data, "submissions")],
                distributions=[
                    _distribution_from_dict(o) for o in _records(data, "distributions")
                ],
            )
        )
    except _Invalid as e:
        return Err(StateError(str(e), path=path))


def _records(data: StrDict, key: str) -> list[StrDict]:
    raw = get_list(data, key) or []
    out: list[StrDict] = []
    for index, item in enumerate(raw):
        table = as_str_dict(item)
        if table is None:
            raise _Invalid(f"{key}[{index}] must be an object")
        out.append(table)
    return out


def _require(table: StrDict, key: str, what: str) -> str:
    value = get_str(table, key)
    if value is None:
        raise _Invalid(f"{what} is missing '{key}'")
    return value


def _enum[E](enum_type: type[E], raw: str | None, what: str, default: E | None = None) -> E:
    if raw is None:
        if default is None:
            raise _Invalid(f"{what} is missing")
        return default
    try:
        return enum_type(raw)  # type: ignore[call-arg]
    except ValueError:
        raise _Invalid(f"{what}: unknown value '{raw}'") from None


def _build_to_dict(build: Build) -> StrDict:
    return {
        "id": build.id,
        "release_id": build.release_id,
        "platform": build.platform.value,
        "target": build.target,
        "provider_type": build.provider_type.value if build.provider_type else None,
        "queue_location": build.queue_location,
        "run_id": build.run_id,
        "workflow_status": build.workflow_status.value,
        "upload_status": build.upload_status.value,
        "task_id": build.task_id,
    }


def _build_from_dict(table: StrDict) -> Build:
    build_id = _require(table, "id", "build")
    what = f"build {build_id}"

    provider_type: ProviderType | None = None
    raw_provider = get_str(table, "provider_type")
    if raw_provider is not None:
        provider_type = ProviderType.parse(raw_provider)
        if provider_type is None:
            raise _Invalid(f"{what}: unknown provider type '{raw_provider}'")

    return Build(
        id=build_id,
        release_id=_require(table, "release_id", what),
        platform=_enum(Platform, get_str(table, "platform"), f"{what} platform"),
        target=get_str(table, "target") or "",
        provider_type=provider_type,
        queue_location=get_str(table, "queue_location"),
        run_id=get_str(table, "run_id"),
        workflow_status=_enum(
            WorkflowStatus,
            get_str(table, "workflow_status"),
            f"{what} workflow_status",
            WorkflowStatus.PENDING,
        ),
        upload_status=_enum(
            UploadStatus,
            get_str(table, "upload_status"),
            f"{what} upload_status",
            UploadStatus.PENDING,
        ),
        task_id=get_str(table, "task_id"),
    )


def _action_to_dict(record: ActionRecord) -> StrDict:
    return {
        "action": record.action.value,
        "at": record.at,
        "reason": record.reason,
        "previous_percent": record.previous_percent,
        "new_percent": record.new_percent,
        "actor": record.actor,
        "severity": record.severity.value if record.severity else None,
    }


def _action_from_dict(table: StrDict, what: str) -> ActionRecord:
    raw_severity = get_str(table, "severity")
    return ActionRecord(
        action=_enum(RolloutAction, get_str(table, "action"), f"{what} action"),
        at=get_str(table, "at") or "",
        reason=get_str(table, "reason"),
        previous_percent=get_float(table, "previous_percent"),
        new_percent=get_float(table, "new_percent"),
        actor=get_str(table, "actor"),
        severity=_enum(Severity, raw_severity, f"{what} severity") if raw_severity else None,
    )


def _submission_to_dict(submission: Submission) -> StrDict:
    return {
        "id": submission.id,
        "release_id": submission.release_id,
        "platform": submission.platform.value,
        "version_name": submission.version_name,
        "status": submission.status.value,
        "exposure_percent": submission.exposure_percent,
        "phased_release": submission.phased_release,
        "rollout_day": submission.rollout_day,
        "submitted_at": submission.submitted_at,
        "released_at": submission.released_at,
        "status_reason": submission.status_reason,
        "superseded_by": submission.superseded_by,
        "history": [_action_to_dict(r) for r in submission.history],
    }


def _submission_from_dict(table: StrDict) -> Submission:
    submission_id = _require(table, "id", "submission")
    what = f"submission {submission_id}"

    history: list[ActionRecord] = []
    for item in as_obj_list(table.get("history")) or []:
        entry = as_str_dict(item)
        if entry is None:
            raise _Invalid(f"{what}: history entries must be objects")
        history.append(_action_from_dict(entry, what))

    phased = get_bool(table, "phased_release")
    return Submission(
        id=submission_id,
        release_id=_require(table, "release_id", what),
        platform=_enum(Platform, get_str(table, "platform"), f"{what} platform"),
        version_name=_require(table, "version_name", what),
        status=_enum(
            SubmissionStatus,
            get_str(table, "status"),
            f"{what} status",
            SubmissionStatus.PENDING,
        ),
        exposure_percent=get_float(table, "exposure_percent") or 0.0,
        phased_release=True if phased is None else phased,
        rollout_day=get_int(table, "rollout_day"),
        submitted_at=get_str(table, "submitted_at"),
        released_at=get_str(table, "released_at"),
        status_reason=get_str(table, "status_reason"),
        superseded_by=get_str(table, "superseded_by"),
        history=tuple(history),
    )


def _distribution_to_dict(distribution: Distribution) -> StrDict:
    return {
        "release_id": distribution.release_id,
        "tenant_id": distribution.tenant_id,
        "platforms": [p.value for p in distribution.platforms],
    }


def _distribution_from_dict(table: StrDict) -> Distribution:
    release_id = _require(table, "release_id", "distribution")
    what = f"distribution {release_id}"
    platforms = tuple(
        _enum(Platform, p if isinstance(p, str) else None, f"{what} platform")
        for p in get_list(table, "platforms") or []
    )
    return Distribution(
        release_id=release_id,
        tenant_id=_require(table, "tenant_id", what),
        platforms=platforms,
    )
