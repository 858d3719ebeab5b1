"""
norman publish command.
"""

from pathlib import Path

import typer
from rich.console import Console

from norman.cli.common import get_service, is_debug, module_at
from norman.cli.errors import ExitCode, handle_errors, print_error
from norman.core.build import install_if_uninitialized
from norman.core.publish import Publisher
from norman.core.registry.server import RegistryServer

console = Console()


def publish(
    ctx: typer.Context,
    path: Path | None = typer.Argument(
        None,
        help="Module directory (defaults to the current directory)",
    ),
    bump: str = typer.Option(
        "patch",
        "--bump",
        help="npm version increment used when the current version is already published",
    ),
) -> None:
    """
    Publish a module to its registry if it changed, then update its dependants.

    The module is rebuilt when its build files changed. If its current
    version is already on the registry, the version is bumped first.

    Examples:
        norman publish
        norman publish ../lib-a --bump minor
    """
    with handle_errors(is_debug(ctx)):
        service = get_service(ctx)
        module = module_at(service, path)
        if not module.use_npm:
            print_error(f"Cannot publish module: local module {module.name} is not managed by npm")
            raise typer.Exit(ExitCode.USER_ERROR)

        with RegistryServer(service):
            install_if_uninitialized(service, module)
            outcome = Publisher(service).publish_if_changed(module, bump=bump)

        if not outcome.published:
            console.print(f"[dim]{module.name} is up to date, nothing to publish[/dim]")
            return
        console.print(f"[green]✓[/green] Published {module.name}@{outcome.version}", highlight=False)
        for dependant in outcome.updated:
            console.print(f"  updated {dependant.name}", highlight=False)
