"""
Child process execution for git, npm and build commands.

Commands are echoed to the console before they run. Output either streams
to the terminal or is captured and returned. A non-zero exit code raises
ProcessError, carrying the captured output.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path

from rich.console import Console

from norman.core.exceptions import ProcessError

logger = logging.getLogger(__name__)

console = Console(stderr=True)


def get_npm_executable() -> str:
    """Return the npm executable name for this platform (overridable via NORMAN_NPM)."""
    if override := os.environ.get("NORMAN_NPM"):
        return override
    if sys.platform == "win32":
        return "npm.cmd"
    return "npm"


def run_command(
    command: str,
    args: Sequence[str] | None = None,
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    capture: bool = False,
    silent: bool = False,
    check: bool = True,
) -> str:
    """
    Run a child process and wait for it to finish.

    Args:
        command: Executable, or a full shell command line when ``args`` is None
        args: Arguments; when None, ``command`` runs through the shell
        cwd: Working directory
        env: Complete environment for the child (defaults to os.environ)
        capture: Capture stdout/stderr and return stdout
        silent: Do not echo the command line
        check: Raise ProcessError on a non-zero exit code

    Returns:
        Captured stdout, or an empty string when output is not captured

    Raises:
        ProcessError: If the process exits with a non-zero code and check=True,
            or the executable cannot be found
    """
    shell = args is None
    cmd: list[str] = [command] if shell else [command, *args]  # type: ignore[list-item]
    display = " ".join(cmd)

    if not silent:
        console.print(f"[cyan]→ {display}[/cyan]", highlight=False)
    logger.debug("Running %s in %s", display, cwd or Path.cwd())

    try:
        result = subprocess.run(
            command if shell else cmd,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            shell=shell,
            capture_output=capture,
            text=True,
        )
    except FileNotFoundError as e:
        raise ProcessError(cmd, 127, output=str(e)) from e

    output = (result.stdout or "") if capture else ""
    if check and result.returncode != 0:
        captured = output
        if capture and result.stderr:
            captured = f"{captured}{result.stderr}"
        raise ProcessError(cmd, result.returncode, output=captured)

    if not silent and not capture:
        console.print("[cyan]→ DONE[/cyan]", highlight=False)
    return output
