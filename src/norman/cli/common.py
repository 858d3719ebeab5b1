"""
Helpers shared by norman commands.
"""

import logging
import sys
from pathlib import Path

import typer

from norman.cli.errors import ExitCode, print_module_not_found_error
from norman.core.context import ServiceContext, build_context
from norman.core.modules.models import LocalModule


def setup_logging(debug: bool = False) -> None:
    """
    Configure logging for a command run.

    Args:
        debug: If True, enable DEBUG level logging with logger names
    """
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            stream=sys.stderr,
        )
    else:
        logging.basicConfig(level=logging.WARNING, format="%(message)s", stream=sys.stderr)


def is_debug(ctx: typer.Context) -> bool:
    return bool(ctx.obj.get("debug", False)) if ctx.obj else False


def get_service(ctx: typer.Context) -> ServiceContext:
    """Load the workspace and build the service context for a command."""
    config_path = ctx.obj.get("config") if ctx.obj else None
    return build_context(config_path)


def module_at(service: ServiceContext, path: Path | None = None) -> LocalModule:
    """
    Return the local module located at ``path`` (default: cwd).

    Exits with USER_ERROR when no configured module lives there.
    """
    directory = (path or Path.cwd()).resolve()
    module = service.modules.find_by_path(directory)
    if module is None:
        print_module_not_found_error(str(directory))
        raise typer.Exit(ExitCode.USER_ERROR)
    return module
