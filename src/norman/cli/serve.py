"""
norman serve command: run the local registry proxy in the foreground.
"""

import typer
import uvicorn
from rich.console import Console

from norman.cli.common import get_service, is_debug
from norman.cli.errors import handle_errors
from norman.core.registry.app import create_app
from norman.core.registry.server import LOCALHOST

console = Console()


def serve(
    ctx: typer.Context,
    port: int = typer.Option(
        4873,
        "--port",
        "-p",
        help="Port to listen on",
    ),
) -> None:
    """
    Serve the local registry until interrupted.

    Point npm at it with `npm --registry http://127.0.0.1:<port> install`.

    Examples:
        norman serve
        norman serve --port 5000
    """
    debug = is_debug(ctx)
    with handle_errors(debug):
        service = get_service(ctx)
        address = f"http://{LOCALHOST}:{port}"
        service.registry_address = address

        console.print(f"[bold cyan]Local registry listening on {address}[/bold cyan]")
        console.print(f"[dim]Serving {len(service.modules)} local module(s)[/dim]")
        console.print("[dim]Press Ctrl+C to stop[/dim]\n")

        uvicorn.run(
            create_app(service),
            host=LOCALHOST,
            port=port,
            log_level="info" if debug else "warning",
        )
