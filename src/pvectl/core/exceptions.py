"""Custom exceptions for pvectl.

This module defines a hierarchy of exceptions used throughout pvectl
to provide meaningful error messages and enable proper error handling.

Exception Hierarchy:
    PvectlError (base)
    ├── ConfigurationError
    │   ├── ConfigNotFoundError
    │   ├── InvalidConfigError
    │   ├── ContextNotFoundError
    │   ├── ClusterNotFoundError
    │   ├── UserNotFoundError
    │   └── MissingCredentialsError
    ├── ApiError
    │   ├── AuthenticationError
    │   ├── ResourceNotFoundError
    │   └── TransientApiError
    ├── ApiConnectionError
    └── TaskTimeoutError
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class PvectlError(Exception):
    """Base exception for all pvectl errors.

    Args:
        message: Human-readable error message.
        details: Optional dictionary with additional error context.

    Attributes:
        message: The error message.
        details: Additional context about the error.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ConfigurationError(PvectlError):
    """Raised when there is a configuration-related error.

    Every configuration problem descends from this class so callers can
    handle the whole category with a single ``except`` clause.
    """


class ConfigNotFoundError(ConfigurationError):
    """Raised when the configuration file cannot be found.

    Args:
        path: The path where the config was expected.
    """

    def __init__(self, path: str) -> None:
        super().__init__(
            f"Configuration file not found: {path}",
            details={"path": path},
        )
        self.path = path


class InvalidConfigError(ConfigurationError):
    """Raised when configuration content or values are invalid.

    Examples:
        - Invalid YAML syntax in config file
        - Non-numeric value in PROXMOX_TIMEOUT
        - max-retry-delay smaller than retry-delay
    """


def _available(names: Iterable[str | None]) -> str:
    listed = ", ".join(n for n in names if n)
    return listed or "none"


class ContextNotFoundError(ConfigurationError):
    """Raised when a referenced context does not exist.

    Args:
        name: The context name that was requested.
        available: Names of the contexts that do exist.
    """

    def __init__(self, name: str | None, available: Iterable[str | None] = ()) -> None:
        available = list(available)
        if name is None:
            message = f"No context selected. Available: {_available(available)}"
        else:
            message = f"Context '{name}' not found. Available: {_available(available)}"
        super().__init__(message, details={"context": name})
        self.name = name
        self.available = available


class ClusterNotFoundError(ConfigurationError):
    """Raised when a context references a cluster that does not exist.

    Args:
        name: The cluster name that was requested.
        available: Names of the clusters that do exist.
    """

    def __init__(self, name: str | None, available: Iterable[str | None] = ()) -> None:
        available = list(available)
        super().__init__(
            f"Cluster '{name}' not found in configuration. Available: {_available(available)}",
            details={"cluster": name},
        )
        self.name = name
        self.available = available


class UserNotFoundError(ConfigurationError):
    """Raised when a context references a user that does not exist.

    Args:
        name: The user name that was requested.
        available: Names of the users that do exist.
    """

    def __init__(self, name: str | None, available: Iterable[str | None] = ()) -> None:
        available = list(available)
        super().__init__(
            f"User '{name}' not found in configuration. Available: {_available(available)}",
            details={"user": name},
        )
        self.name = name
        self.available = available


class MissingCredentialsError(ConfigurationError):
    """Raised when no complete token or password pair is available."""


class ApiError(PvectlError):
    """Raised when the Proxmox API returns an error response.

    Args:
        message: Description of the failure.
        status_code: HTTP status code, if a response was received.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message, details={"status_code": status_code})
        self.status_code = status_code


class AuthenticationError(ApiError):
    """Raised on 401/403 responses or a rejected login."""


class ResourceNotFoundError(ApiError):
    """Raised when a requested resource does not exist."""


class TransientApiError(ApiError):
    """Raised for responses that are worth retrying (429 and 5xx gateway errors)."""


class ApiConnectionError(PvectlError):
    """Raised when the API endpoint cannot be reached.

    Args:
        server: The server URL.
        message: Description of the connection failure.
    """

    def __init__(self, server: str, message: str) -> None:
        super().__init__(
            f"Connection to '{server}' failed: {message}",
            details={"server": server},
        )
        self.server = server


class TaskTimeoutError(PvectlError):
    """Raised when waiting for a task exceeds the allowed time.

    Args:
        upid: The task's UPID.
        timeout: The timeout value in seconds.
    """

    def __init__(self, upid: str, timeout: float) -> None:
        super().__init__(
            f"Task {upid} timed out after {timeout}s",
            details={"upid": upid, "timeout": timeout},
        )
        self.upid = upid
        self.timeout = timeout
