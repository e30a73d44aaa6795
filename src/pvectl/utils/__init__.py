"""Utility modules for pvectl.

This package contains shared utilities for logging, output formatting,
and retry logic.
"""

from pvectl.utils.logging import configure_logging, get_logger
from pvectl.utils.output import OutputFormatter, console
from pvectl.utils.retry import retry_with_backoff

__all__ = [
    "OutputFormatter",
    "configure_logging",
    "console",
    "get_logger",
    "retry_with_backoff",
]
