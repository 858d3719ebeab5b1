"""
norman lockfile command: refresh lockfiles of lockfile-enabled modules.
"""

import typer
from rich.console import Console

from norman.cli.common import get_service, is_debug
from norman.cli.errors import handle_errors
from norman.core.lockfile import Lockfile
from norman.core.npm import NpmRunner
from norman.core.registry.server import RegistryServer

console = Console()


def lockfile(ctx: typer.Context) -> None:
    """
    Update integrity and resolved fields in every module lockfile.

    Modules that use a lockfile but have none yet get one generated with
    `npm install --package-lock-only`.

    Examples:
        norman lockfile
    """
    with handle_errors(is_debug(ctx)):
        service = get_service(ctx)
        modules = [m for m in service.modules if m.has_lockfile()]
        if not modules:
            console.print("[blue]No module uses a lockfile[/blue]")
            return

        runner = NpmRunner(service)
        with RegistryServer(service):
            for module in modules:
                if not module.lockfile_path.exists():
                    runner.run(module, ["install", "--package-lock-only"])

                console.print(f"Updating lockfile at {module.lockfile_path}", highlight=False)
                lock = Lockfile(module.lockfile_path)
                lock.update_integrity(runner.local_integrities(lock))
                lock.update_resolved(service.modules, service.npm_config)
