"""
norman sync and sync-all commands.

Both start the registry proxy for the duration of the run, so npm installs
triggered by the synchronizer receive freshly packed local modules.
"""

from pathlib import Path

import typer
from rich.console import Console

from norman.cli.common import get_service, is_debug, module_at
from norman.cli.errors import ExitCode, handle_errors, print_error
from norman.core.build import install_if_uninitialized
from norman.core.context import ServiceContext
from norman.core.fetch import fetch_all
from norman.core.modules.models import LocalModule
from norman.core.registry.server import RegistryServer
from norman.core.sync import SyncSummary, Synchronizer

console = Console()


def _print_summary(summary: SyncSummary) -> None:
    console.print(
        f"[green]✓[/green] Synced {summary.modules} module(s): "
        f"{summary.installed} installed, {summary.built} built, {summary.packaged} packed, "
        f"{summary.files_copied} file(s) copied, {summary.files_removed} removed",
        highlight=False,
    )


def _run(service: ServiceContext, roots: list[LocalModule], build: bool) -> SyncSummary:
    synchronizer = Synchronizer(service)
    plan = synchronizer.build_plan(roots)
    with RegistryServer(service):
        for module in plan.modules:
            install_if_uninitialized(service, module)
        results = synchronizer.run(plan, build=build)
    return SyncSummary.from_results(results)


def sync(
    ctx: typer.Context,
    path: Path | None = typer.Argument(
        None,
        help="Module directory (defaults to the current directory)",
    ),
    no_build: bool = typer.Option(
        False,
        "--no-build",
        help="Do not rebuild modules whose build files changed",
    ),
) -> None:
    """
    Synchronize a module with its local dependencies.

    Local dependencies are rebuilt if needed and copied into node_modules,
    or installed through the local registry when a lockfile pins them.

    Examples:
        norman sync
        norman sync ../app --no-build
    """
    with handle_errors(is_debug(ctx)):
        service = get_service(ctx)
        module = module_at(service, path)
        if not module.use_npm:
            print_error(f"Cannot sync module: local module {module.name} is not managed by npm")
            raise typer.Exit(ExitCode.USER_ERROR)

        _print_summary(_run(service, [module], build=not no_build))


def sync_all(
    ctx: typer.Context,
    no_build: bool = typer.Option(
        False,
        "--no-build",
        help="Do not rebuild modules whose build files changed",
    ),
) -> None:
    """
    Fetch missing modules and synchronize every module of the workspace.

    Examples:
        norman sync-all
    """
    with handle_errors(is_debug(ctx)):
        service = get_service(ctx)
        fetch_all(service)
        _print_summary(_run(service, service.modules.modules, build=not no_build))
