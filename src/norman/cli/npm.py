"""
norman npm command: run npm in the current module against the local registry.
"""

import typer

from norman.cli.common import get_service, is_debug, module_at
from norman.cli.errors import handle_errors
from norman.core.npm import NpmRunner
from norman.core.registry.server import RegistryServer


def npm(
    ctx: typer.Context,
    args: list[str] | None = typer.Argument(None, help="Arguments passed to npm"),
) -> None:
    """
    Run npm in the current module with the local registry in place.

    Examples:
        norman npm install
        norman npm -- ls --depth=0
    """
    with handle_errors(is_debug(ctx)):
        service = get_service(ctx)
        module = module_at(service)
        with RegistryServer(service):
            NpmRunner(service).run(module, args or [])
