"""
Exit codes and error reporting for norman commands.
"""

import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from enum import IntEnum

import typer
from rich.console import Console

from norman.core.exceptions import (
    ConfigError,
    DependencyCycleError,
    LockfileError,
    NormanError,
    ProcessError,
)

console = Console(stderr=True)


class ExitCode(IntEnum):
    """Standard exit codes for norman commands."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """A child process, packaging or the registry proxy failed."""

    USER_ERROR = 2
    """Configuration or workspace problem the user can fix."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


USER_ERRORS = (ConfigError, DependencyCycleError, LockfileError)


def exit_code_for(error: NormanError) -> ExitCode:
    return ExitCode.USER_ERROR if isinstance(error, USER_ERRORS) else ExitCode.GENERAL_ERROR


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print an error message with optional explanation and fix.

    Example:
        >>> print_error(
        ...     "No local module found in /work/app",
        ...     solution="cd into a module listed by `norman list-modules`",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}", highlight=False)

    if reason:
        console.print(f"[dim]{reason}[/dim]", highlight=False)

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}", highlight=False)


def print_module_not_found_error(path: str) -> None:
    print_error(
        f"No local module found at {path}",
        reason="The directory is not the path of any module in .norman.json",
        solution="norman list-modules  # to see configured module paths",
    )


@contextmanager
def handle_errors(debug: bool = False) -> Iterator[None]:
    """Turn norman errors into a printed message and a non-zero exit."""
    try:
        yield
    except NormanError as e:
        if isinstance(e, ProcessError):
            print_error(str(e), reason=e.output.strip() or None)
        elif isinstance(e, DependencyCycleError):
            print_error(
                str(e),
                reason=f"Modules on the cycle: {', '.join(e.participants)}",
                solution="remove one of the dependencies on the cycle",
            )
        else:
            print_error(str(e))
        if debug:
            console.print(traceback.format_exc(), highlight=False)
        raise typer.Exit(exit_code_for(e)) from e
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(ExitCode.SIGINT)
