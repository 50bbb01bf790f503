"""Process exit codes for the ``rr`` command line.

Each engine error variant maps onto one of these codes (see
``rr.output.errors``). The numeric values are part of the CLI contract that
schedulers and wrappers rely on, so they must stay stable:

- 0: Success
- 1: User error (bad arguments, invalid percent, missing reason)
- 2: Configuration error (unsupported provider, bad config file)
- 3: Conflict (stale precondition, terminal submission)
- 4: Provider error (CI/CD or store API unreachable or refusing)
- 5: I/O error (state file unreadable or unwritable)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands."""

    OK = 0
    USER_ERROR = 1
    CONFIG_ERROR = 2
    CONFLICT = 3
    PROVIDER_ERROR = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
