"""
norman clean command: purge caches and saved state.
"""

from enum import Enum

import typer
from rich.console import Console

from norman.cli.common import get_service, is_debug
from norman.cli.errors import handle_errors
from norman.core.registry.cache import TarballCache

console = Console()


class CleanTarget(str, Enum):
    CACHE = "cache"
    STATE = "state"
    ALL = "all"


def clean(
    ctx: typer.Context,
    what: CleanTarget = typer.Argument(..., help="What to remove: cache, state or all"),
) -> None:
    """
    Remove cached upstream tarballs, saved module states, or everything.

    `all` also removes the temp directories used for packing local modules.

    Examples:
        norman clean cache
        norman clean all
    """
    with handle_errors(is_debug(ctx)):
        service = get_service(ctx)

        if what in (CleanTarget.CACHE, CleanTarget.ALL):
            console.print("[green]Cleaning local npm server cache[/green]")
            TarballCache(service.cache_dir).clean()

        if what in (CleanTarget.STATE, CleanTarget.ALL):
            console.print("[green]Cleaning stored modules state[/green]")
            service.state_manager.clean()

        if what is CleanTarget.ALL:
            console.print("[green]Cleaning temp files[/green]")
            service.packager.clean()
