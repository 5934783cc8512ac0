"""
adosync CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging
import sys

import typer
from rich.console import Console

from adosync import __version__
from adosync.cli import workitems
from adosync.core.config.env import load_layered_env

app = typer.Typer(
    name="adosync",
    help="Bulk fetch and update Azure DevOps work items",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


def setup_logging(debug: bool = False) -> None:
    """
    Configure logging for CLI commands.

    Args:
        debug: If True, enable DEBUG level logging
    """
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"adosync version {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """
    adosync - bulk work item sync for Azure DevOps.

    Credentials come from AZURE_DEVOPS_ORG, AZURE_DEVOPS_PROJECT and
    AZURE_DEVOPS_PAT (environment, .env, or .adosync.json).

    Examples:
        adosync fetch 101 102 103
        adosync fetch $(seq 1 500) --batch
        adosync query "SELECT [System.Id] FROM WorkItems"
        adosync update updates.json
    """
    # Precedence: OS env > project .env > user .env
    load_layered_env()
    setup_logging(debug)
    ctx.obj = {"debug": debug}


app.command(name="fetch")(workitems.fetch)
app.command(name="query")(workitems.query)
app.command(name="update")(workitems.update)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
