"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rr.core.config import ConfigError
from rr.core.errors import ErrorCode
from rr.domain.errors import (
    CallbackFailed,
    ConflictDetected,
    EngineError,
    InvalidSubmissionState,
    MissingField,
    NotFound,
    ProviderRequestFailed,
    ProviderTransientFailure,
    RolloutValidationFailed,
    StoreCallFailed,
    TerminalStateViolation,
    UnsupportedProvider,
)
from rr.output.console import Style
from rr.store.state import StateError

if TYPE_CHECKING:
    from rr.output.console import ConsoleProtocol

__all__ = ["format_engine_error", "print_engine_error", "engine_error_exit_code", "CliError"]

CliError = EngineError | ConfigError | StateError


def _pct(value: float) -> str:
    return f"{value:g}%"


def format_engine_error(error: CliError) -> str:
    """One-line description of an error."""
    match error:
        case MissingField(build_id=build_id, field=name):
            return f"build {build_id}: missing {name}"
        case UnsupportedProvider(provider=provider):
            return f"provider {provider} is not supported"
        case ProviderTransientFailure(provider=provider, message=message):
            return f"{provider}: {message} (will retry next pass)"
        case ProviderRequestFailed(provider=provider, message=message):
            return f"{provider}: {message}"
        case ConflictDetected(kind=kind, submission_id=sid, expected=expected, current=current):
            return f"{kind} conflict on {sid}: expected {expected}, current {current}"
        case TerminalStateViolation(submission_id=sid, status=status, operation=op):
            return f"cannot {op} {sid}: submission is {status}"
        case InvalidSubmissionState(
            submission_id=sid, status=status, operation=op, allowed=allowed
        ):
            allowed_text = ", ".join(str(s) for s in allowed) or "none"
            return f"cannot {op} {sid} from {status} (allowed from: {allowed_text})"
        case RolloutValidationFailed(submission_id=sid, message=message):
            return f"{sid}: {message}"
        case NotFound(entity=entity, key=key):
            return f"{entity} not found: {key}"
        case StoreCallFailed(platform=platform, operation=op, message=message):
            return f"{platform} store rejected {op}: {message}"
        case CallbackFailed(task_id=task_id, message=message):
            return f"callback for task {task_id} failed: {message}"
        case ConfigError(message=message, path=path):
            return f"{message} ({path})" if path else message
        case StateError(message=message, path=path):
            return f"state: {message} ({path})" if path else f"state: {message}"
    # Fallback for exhaustiveness
    return str(error)


def print_engine_error(error: CliError, console: ConsoleProtocol) -> None:
    """Print an error with the details an operator needs to re-decide."""
    console.error(format_engine_error(error))
    match error:
        case ConflictDetected(submission=current):
            console.print(
                f"current: status={current.status} exposure={_pct(current.exposure_percent)} "
                f"version={current.version_name}",
                Style.DIM,
            )
            if current.superseded_by:
                console.print(f"superseded by: {current.superseded_by}", Style.DIM)
        case TerminalStateViolation():
            console.print("hint: create a new submission with: rr submission resubmit", Style.DIM)
        case InvalidSubmissionState(hint=hint) if hint:
            console.print(f"hint: {hint}", Style.DIM)
        case _:
            pass


def engine_error_exit_code(error: CliError) -> int:
    """Get exit code for an error."""
    match error:
        case ConflictDetected() | TerminalStateViolation():
            return int(ErrorCode.CONFLICT)
        case InvalidSubmissionState() | RolloutValidationFailed() | NotFound() | MissingField():
            return int(ErrorCode.USER_ERROR)
        case UnsupportedProvider() | ConfigError():
            return int(ErrorCode.CONFIG_ERROR)
        case (
            ProviderTransientFailure()
            | ProviderRequestFailed()
            | StoreCallFailed()
            | CallbackFailed()
        ):
            return int(ErrorCode.PROVIDER_ERROR)
        case StateError():
            return int(ErrorCode.IO_ERROR)
    # Fallback for exhaustiveness
    return int(ErrorCode.USER_ERROR)
