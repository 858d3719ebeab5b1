"""
Norman CLI - Main application entry point.

This module sets up the Typer CLI application with all commands.
"""

import sys

import typer
from rich.console import Console

from norman import __version__
from norman.cli import clean, lockfile, modules, npm, publish, serve, sync
from norman.cli.common import setup_logging
from norman.cli.errors import ExitCode

app = typer.Typer(
    name="norman",
    help="Work on interdependent npm packages without publishing them",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    config: str | None = typer.Option(
        None,
        "--config",
        "-c",
        envvar="NORMAN_CONFIG",
        help="Path to .norman.json (or the directory holding it)",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
) -> None:
    """
    Norman - a local registry and synchronizer for npm packages under development.

    Modules listed in .norman.json are served to npm by a local registry
    proxy and kept in sync inside each other's node_modules.

    Common Workflows:
        norman fetch              # Clone and install all modules
        norman sync               # Sync the module in the current directory
        norman sync-all           # Sync every module
        norman npm install foo    # Run npm against the local registry
        norman publish            # Publish the current module if it changed
    """
    setup_logging(debug)
    ctx.obj = {"debug": debug, "config": config}


app.command(name="list-modules")(modules.list_modules)
app.command(name="dependency-tree")(modules.dependency_tree)
app.command(name="fetch")(modules.fetch)
app.command(name="sync")(sync.sync)
app.command(name="sync-all")(sync.sync_all)
app.command(
    name="npm",
    context_settings={"ignore_unknown_options": True, "allow_extra_args": True},
)(npm.npm)
app.command(name="serve")(serve.serve)
app.command(name="clean")(clean.clean)
app.command(name="lockfile")(lockfile.lockfile)
app.command(name="publish")(publish.publish)


@app.command()
def version() -> None:
    """Show norman version and exit."""
    console.print(f"norman version {__version__}")
    raise typer.Exit(0)


def cli_main() -> None:
    """Main CLI entry point."""
    try:
        app()
    except KeyboardInterrupt:
        sys.exit(ExitCode.SIGINT)


__all__ = ["app", "cli_main"]
