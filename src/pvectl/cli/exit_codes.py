"""Process exit codes for pvectl commands."""

from __future__ import annotations

from enum import IntEnum

import click

from pvectl.core.exceptions import (
    ApiConnectionError,
    AuthenticationError,
    ConfigurationError,
    ResourceNotFoundError,
)


class ExitCode(IntEnum):
    """Exit statuses returned by the CLI."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    USAGE_ERROR = 2
    CONFIG_ERROR = 3
    CONNECTION_ERROR = 4
    NOT_FOUND = 5
    PERMISSION_DENIED = 6
    INTERRUPTED = 130


def exit_code_for(error: BaseException) -> ExitCode:
    """Map an exception to the exit code reported for it.

    Example:
        >>> exit_code_for(ContextNotFoundError("prod"))
        <ExitCode.CONFIG_ERROR: 3>
    """
    if isinstance(error, KeyboardInterrupt):
        return ExitCode.INTERRUPTED
    if isinstance(error, click.UsageError):
        return ExitCode.USAGE_ERROR
    if isinstance(error, ConfigurationError):
        return ExitCode.CONFIG_ERROR
    if isinstance(error, ApiConnectionError):
        return ExitCode.CONNECTION_ERROR
    if isinstance(error, ResourceNotFoundError):
        return ExitCode.NOT_FOUND
    if isinstance(error, AuthenticationError):
        return ExitCode.PERMISSION_DENIED
    return ExitCode.GENERAL_ERROR
