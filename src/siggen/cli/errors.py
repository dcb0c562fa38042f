"""
Unified CLI Error Handling
==========================

Provides consistent error handling and exit codes for the CLI.
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click


class ExitCode(IntEnum):
    """Standard exit codes for the CLI."""
    SUCCESS = 0
    DEVICE_ERROR = 1     # Connection, transport, protocol or timeout error
    INVALID_ARGS = 2     # Invalid arguments or values outside a table
    INTERNAL_ERROR = 3   # Unexpected internal error


def handle_cli_exception(
    error: Exception,
    verbose: bool = False,
    error_type: str | None = None
) -> NoReturn:
    """
    Unified exception handler for CLI commands.

    Args:
        error: The exception that was raised
        verbose: If True, print full traceback for internal errors
        error_type: Optional prefix for the error message (e.g., "Connection")

    Raises:
        SystemExit: Always exits with an appropriate exit code
    """
    from siggen.errors import (
        CommsError,
        RegistryError,
        ResponseTimeoutError,
        SiggenError,
    )

    if isinstance(error, ResponseTimeoutError):
        click.echo(f"No response: {error}", err=True)
        sys.exit(ExitCode.DEVICE_ERROR)

    elif isinstance(error, RegistryError):
        # Bad table index or command name given by the user
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    elif isinstance(error, CommsError):
        prefix = f"{error_type} error: " if error_type else "Communication error: "
        click.echo(f"{prefix}{error}", err=True)
        sys.exit(ExitCode.DEVICE_ERROR)

    elif isinstance(error, SiggenError):
        prefix = f"{error_type} error: " if error_type else "Error: "
        click.echo(f"{prefix}{error}", err=True)
        sys.exit(ExitCode.DEVICE_ERROR)

    elif isinstance(error, (click.BadParameter, ValueError)):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    else:
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exc()
        sys.exit(ExitCode.INTERNAL_ERROR)
