"""Logging setup for pvectl.

All pvectl loggers live under the ``pvectl`` namespace and write to
stderr, leaving stdout free for command output. Verbosity maps to:

- no flag: WARNING
- ``-v``: INFO
- ``-vv``: DEBUG
- ``-vvv``: DEBUG plus urllib3 connection logging
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ROOT_LOGGER = "pvectl"

_loggers: dict[str, logging.Logger] = {}


def get_log_level(verbosity: int) -> int:
    """Map a ``-v`` count to a logging level.

    Args:
        verbosity: Number of -v flags.

    Returns:
        Logging level constant.
    """
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def configure_logging(
    verbosity: int = 0,
    log_file: str | Path | None = None,
    log_level: str | None = None,
) -> None:
    """Configure the ``pvectl`` logger hierarchy.

    The stderr handler follows the verbosity; the optional file handler
    always records DEBUG.

    Args:
        verbosity: Number of -v flags from the CLI.
        log_file: Optional path to a log file.
        log_level: Explicit level name, overriding verbosity.

    Example:
        >>> configure_logging(verbosity=2)
    """
    if log_level:
        level = getattr(logging, log_level.upper(), logging.WARNING)
    else:
        level = get_log_level(verbosity)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # HTTP wire logging only at -vvv
    urllib3_logger = logging.getLogger("urllib3")
    urllib3_logger.handlers.clear()
    if verbosity >= 3:
        urllib3_logger.setLevel(logging.DEBUG)
        urllib3_logger.addHandler(console_handler)
    else:
        urllib3_logger.setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a child logger of ``pvectl``.

    Args:
        name: Module name (e.g. ``config``, ``connection``).

    Example:
        >>> logger = get_logger("connection")
        >>> logger.debug("GET cluster/resources")
    """
    prefix = f"{ROOT_LOGGER}."
    full_name = name if name.startswith(prefix) else prefix + name

    if full_name not in _loggers:
        _loggers[full_name] = logging.getLogger(full_name)

    return _loggers[full_name]
