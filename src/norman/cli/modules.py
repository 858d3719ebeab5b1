"""
norman list-modules, dependency-tree and fetch commands.
"""

import typer
from rich.console import Console
from rich.tree import Tree

from norman.cli.common import get_service, is_debug
from norman.cli.errors import handle_errors
from norman.core.build import install_if_uninitialized
from norman.core.fetch import fetch_all
from norman.core.modules.models import LocalModule
from norman.core.registry.server import RegistryServer

console = Console()


def list_modules(ctx: typer.Context) -> None:
    """
    List configured local modules with their paths.

    Examples:
        norman list-modules
    """
    with handle_errors(is_debug(ctx)):
        service = get_service(ctx)
        for module in service.modules:
            console.print(f"[green]{module.name}[/green]: {module.path}", highlight=False)


def _add_branch(
    parent: Tree,
    module: LocalModule,
    deps_of: dict[str, list[LocalModule]],
    path: tuple[str, ...],
) -> None:
    branch = parent.add(module.name.name)
    if module.name.name in path:
        return
    for dep in deps_of.get(module.name.name, []):
        _add_branch(branch, dep, deps_of, (*path, module.name.name))


def dependency_tree(ctx: typer.Context) -> None:
    """
    Show local dependencies of every module and the order they are walked in.

    Examples:
        norman dependency-tree
    """
    with handle_errors(is_debug(ctx)):
        service = get_service(ctx)
        modules = service.modules.modules
        graph = service.graph(dev_roots=modules)

        deps_of = {module.name.name: deps for module, deps in graph.tree(modules)}
        tree = Tree("[bold]Dependency tree[/bold]")
        for module in modules:
            _add_branch(tree, module, deps_of, ())
        console.print(tree)

        console.print("\n[bold]Walk order[/bold]")
        for index, module in enumerate(graph.ordered(modules), start=1):
            console.print(f"{index:>3}. {module.name}", highlight=False)


def fetch(
    ctx: typer.Context,
    no_install: bool = typer.Option(
        False,
        "--no-install",
        help="Only clone missing modules, do not install their dependencies",
    ),
) -> None:
    """
    Clone modules that are not on disk yet, then install and build them.

    Examples:
        norman fetch
        norman fetch --no-install
    """
    with handle_errors(is_debug(ctx)):
        service = get_service(ctx)
        cloned = fetch_all(service)
        if cloned:
            console.print(f"[green]✓[/green] Cloned {len(cloned)} module(s)")
        else:
            console.print("[blue]All modules are present[/blue]")

        if no_install:
            return

        modules = service.modules.modules
        ordered = service.graph(dev_roots=modules).ordered(modules)
        with RegistryServer(service):
            installed = [m for m in ordered if install_if_uninitialized(service, m)]
        if installed:
            console.print(f"[green]✓[/green] Installed dependencies of {len(installed)} module(s)")
