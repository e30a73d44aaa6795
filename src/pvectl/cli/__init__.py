"""CLI module for pvectl.

This package contains all Click command definitions for the pvectl CLI.
"""

from pvectl.cli.main import cli

__all__ = ["cli"]
