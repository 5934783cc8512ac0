"""
Standardized error handling and exit codes for the adosync CLI.

This module provides consistent error messaging with actionable guidance
and standardized exit codes across all CLI commands.
"""

import traceback
from enum import IntEnum

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from adosync.core.exceptions import ConfigError, SyncError

console = Console(stderr=True)


class ExitCode(IntEnum):
    """Standard exit codes for adosync CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Transport failure, or some records failed."""

    USER_ERROR = 2
    """User configuration or input error (actionable by user)."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_missing_credentials_error(error: ConfigError) -> None:
    """Print error when organization, project or token is not configured."""
    missing = error.context.get("missing") or []
    env_names = {
        "organization": "AZURE_DEVOPS_ORG",
        "project": "AZURE_DEVOPS_PROJECT",
        "pat": "AZURE_DEVOPS_PAT",
    }
    exports = "  ".join(f"export {env_names[name]}=..." for name in missing if name in env_names)
    print_error(
        str(error),
        reason="adosync needs an organization, a project and a personal access token",
        solution=exports or "set them in .adosync.json or .env",
    )


def handle_error(error: Exception, command_name: str, *, debug: bool = False) -> ExitCode:
    """
    Display an error and return the exit code to use.

    Args:
        error: The exception that was raised
        command_name: Name of the command that failed
        debug: Print the full traceback

    Returns:
        USER_ERROR for configuration problems, GENERAL_ERROR otherwise
    """
    if isinstance(error, ConfigError):
        print_missing_credentials_error(error)
        return ExitCode.USER_ERROR

    error_text = Text()
    if isinstance(error, SyncError):
        error_text.append("Error: ", style="bold red")
        error_text.append(str(error))
        if error.context:
            error_text.append("\n\nContext:\n", style="dim")
            for key, value in error.context.items():
                error_text.append(f"  {key}: ", style="cyan")
                error_text.append(f"{value}\n", style="white")
        title = "[bold red]Error[/bold red]"
    else:
        error_text.append("Unexpected error in ", style="bold red")
        error_text.append(command_name, style="bold yellow")
        error_text.append(": ", style="bold red")
        error_text.append(str(error))
        title = "[bold red]Unexpected Error[/bold red]"

    console.print()
    console.print(Panel(error_text, title=title, border_style="red", expand=False))

    if debug:
        console.print("\n[dim]Full traceback:[/dim]")
        console.print(traceback.format_exc())

    return ExitCode.GENERAL_ERROR
