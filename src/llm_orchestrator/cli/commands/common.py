"""Helpers shared by the CLI commands."""

import logging
from typing import NoReturn

import typer

from llm_orchestrator.core.exceptions import CLIError

SETTINGS_FILE_HELP = "Settings file (default ~/.llm-orchestrator/settings.yaml)"
LOG_LEVEL_HELP = "Logging level (e.g., DEBUG, INFO, WARNING, ERROR)"


def resolve_log_level(log_level: str) -> int:
    """Resolve a --log-level value into a logging constant.

    Raises:
        CLIError: If the name is not a logging level
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise CLIError(f"Unknown log level '{log_level}'")
    return level


def exit_with_error(error: Exception) -> NoReturn:
    """Print ``Error: ...`` to stderr and exit with status 1."""
    # Provider errors carry an untagged message meant for users
    typer.echo(f"Error: {getattr(error, 'message', error)}", err=True)
    raise typer.Exit(code=1) from error
