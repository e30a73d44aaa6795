"""pvectl - kubectl-style CLI for managing Proxmox VE clusters.

This package provides a command-line interface for Proxmox VE with
kubeconfig-style contexts, resource verbs and table/json/yaml output.

Example:
    $ pvectl config use-context prod
    $ pvectl get snapshots 100 101
    $ pvectl create snapshot 100 --name before-upgrade
"""

__version__ = "0.1.0"

from pvectl.core.exceptions import (
    ApiConnectionError,
    ApiError,
    ConfigurationError,
    PvectlError,
    ResourceNotFoundError,
    TaskTimeoutError,
)

__all__ = [
    "ApiConnectionError",
    "ApiError",
    "ConfigurationError",
    "PvectlError",
    "ResourceNotFoundError",
    "TaskTimeoutError",
    "__version__",
]
