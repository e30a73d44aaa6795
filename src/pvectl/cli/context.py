"""CLI context for pvectl.

This module defines the shared context object passed to all CLI commands,
extracted to avoid circular imports.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, NoReturn, TypeVar

import click
from rich.markup import escape

from pvectl.cli.exit_codes import ExitCode, exit_code_for
from pvectl.core.backup_service import BackupService
from pvectl.core.config import ConfigService
from pvectl.core.connection import Connection
from pvectl.core.lifecycle_service import LifecycleService
from pvectl.core.orchestration import OperationOptions
from pvectl.core.repositories import (
    BackupRepository,
    GuestRepository,
    NodeRepository,
    SnapshotRepository,
    TaskRepository,
)
from pvectl.core.resolver import ResourceResolver
from pvectl.core.snapshot_service import SnapshotService
from pvectl.models.operation import OperationResult, any_failed
from pvectl.utils.output import (
    OutputFormat,
    OutputFormatter,
    create_spinner_progress,
    print_error,
    print_info,
    print_warning,
)

T = TypeVar("T")


class Context:
    """CLI context object passed to all commands.

    Holds the configuration service, the lazily opened API connection
    and global CLI options. Services are built from these on demand.

    Attributes:
        config: ConfigService for this invocation.
        cli_options: Global options (config path, context, overrides).
        connection: API connection, once opened.
        output_format: Selected output format.
        verbose: Verbosity level (0-3).
        debug: Whether to show debug tracebacks.
    """

    def __init__(self) -> None:
        self.config = ConfigService()
        self.cli_options: dict[str, Any] = {}
        self.connection: Connection | None = None
        self.resolver: ResourceResolver | None = None
        self.output_format = OutputFormat.TABLE
        self.verbose: int = 0
        self.debug: bool = False

    @property
    def formatter(self) -> OutputFormatter:
        """Formatter for the selected output format."""
        return OutputFormatter(self.output_format)

    def init_config(self, create_missing: bool = False) -> ConfigService:
        """Load the configuration file on first use.

        Args:
            create_missing: Create an empty configuration file if none exists.

        Returns:
            The loaded ConfigService.
        """
        if not self.config.is_loaded:
            self.config.load(self.cli_options, create_missing=create_missing)
        return self.config

    def init_connection(self) -> Connection:
        """Open the API connection for the active context.

        Returns:
            Connection instance.
        """
        if self.connection is None:
            self.connection = Connection(self.init_config().current_config)
        return self.connection

    def init_resolver(self) -> ResourceResolver:
        """Create the resource resolver.

        Returns:
            ResourceResolver instance.
        """
        if self.resolver is None:
            self.resolver = ResourceResolver(self.init_connection())
        return self.resolver

    def snapshot_service(self, options: OperationOptions | None = None) -> SnapshotService:
        """Build a SnapshotService on the current connection."""
        connection = self.init_connection()
        return SnapshotService(
            SnapshotRepository(connection),
            self.init_resolver(),
            TaskRepository(connection),
            options,
        )

    def lifecycle_service(self, options: OperationOptions | None = None) -> LifecycleService:
        """Build a LifecycleService on the current connection."""
        connection = self.init_connection()
        return LifecycleService(
            GuestRepository(connection),
            self.init_resolver(),
            TaskRepository(connection),
            options,
        )

    def backup_service(self, options: OperationOptions | None = None) -> BackupService:
        """Build a BackupService on the current connection."""
        connection = self.init_connection()
        return BackupService(
            BackupRepository(connection),
            self.init_resolver(),
            TaskRepository(connection),
            options,
        )

    def guest_repository(self) -> GuestRepository:
        return GuestRepository(self.init_connection())

    def node_repository(self) -> NodeRepository:
        return NodeRepository(self.init_connection())

    def with_spinner(self, description: str, func: Callable[[], T]) -> T:
        """Run ``func`` behind a spinner when printing tables."""
        if not self.formatter.is_table:
            return func()
        progress = create_spinner_progress()
        with progress:
            progress.add_task(escape(description), total=None)
            return func()

    def report_results(
        self,
        results: list[OperationResult],
        requested: bool,
        noun: str = "resources",
    ) -> None:
        """Print results, exiting non-zero if any failed.

        An empty result list is an error only when specific VMIDs were
        requested.
        """
        if not results:
            if requested:
                print_warning(f"No matching {noun} found")
                raise SystemExit(ExitCode.NOT_FOUND)
            print_info(f"No {noun} found")
            return

        self.formatter.print_results(results)
        if any_failed(results):
            raise SystemExit(ExitCode.GENERAL_ERROR)

    def cleanup(self) -> None:
        """Clean up resources."""
        if self.connection:
            self.connection.close()


pass_context = click.make_pass_decorator(Context, ensure=True)


def exit_with_error(error: Exception) -> NoReturn:
    """Print ``error`` and exit with the code mapped to it."""
    print_error(str(error))
    raise SystemExit(exit_code_for(error)) from error
