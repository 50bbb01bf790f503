"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import typer

from rr.core.errors import ErrorCode
from rr.core.result import Err, Result
from rr.domain.models import Platform, Severity
from rr.output.errors import CliError, engine_error_exit_code, print_engine_error

if TYPE_CHECKING:
    from rr.cli.context import CLIContext


def unwrap_or_exit[T](result: Result[T, CliError], ctx: CLIContext) -> T:
    """Return the value of an Ok result, or print the error and exit.

    Replaces the common pattern:
        match result:
            case Err(e):
                print_engine_error(e, ctx.console)
                raise typer.Exit(code=engine_error_exit_code(e))
            case Ok(value):
                ...
    """
    if isinstance(result, Err):
        print_engine_error(result.error, ctx.console)
        raise typer.Exit(code=engine_error_exit_code(result.error))
    return result.value


def exit_user_error(ctx: CLIContext, message: str) -> NoReturn:
    ctx.console.error(message)
    raise typer.Exit(code=int(ErrorCode.USER_ERROR))


def parse_platform(ctx: CLIContext, raw: str) -> Platform:
    try:
        return Platform(raw.strip().upper())
    except ValueError:
        exit_user_error(ctx, f"unknown platform '{raw}' (expected ANDROID or IOS)")


def parse_severity(ctx: CLIContext, raw: str) -> Severity:
    try:
        return Severity(raw.strip().upper())
    except ValueError:
        exit_user_error(ctx, f"unknown severity '{raw}'")
