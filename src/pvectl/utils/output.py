"""Rich terminal output utilities for pvectl.

This module renders operation results, snapshots, inventory, backups and
configuration in table, JSON or YAML form, and provides the colored
one-line status helpers used by every command.

Values coming from the API or the user are never interpreted as rich
markup: table cells are wrapped in ``Text`` and interpolated strings go
through ``escape``.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from enum import Enum
from typing import Any

import yaml
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.text import Text

from pvectl.models.backup import Backup
from pvectl.models.config import Context
from pvectl.models.guest import Guest, Node
from pvectl.models.operation import OperationResult
from pvectl.models.snapshot import Snapshot, SnapshotDescription

# Global console instance
console = Console()
error_console = Console(stderr=True)


class OutputFormat(str, Enum):
    """Supported output formats."""

    TABLE = "table"
    JSON = "json"
    YAML = "yaml"


def _cell(value: Any, default: str = "-") -> Text:
    """Plain-text table cell; empty values render as ``default``."""
    if value is None or value == "":
        return Text(default)
    return Text(str(value))


class OutputFormatter:
    """Formats pvectl data in the selected output format.

    Args:
        format_type: Output format to use (table, json, yaml).
        output_console: Rich console instance for output.

    Example:
        >>> formatter = OutputFormatter(OutputFormat.JSON)
        >>> formatter.print_results(results)
    """

    def __init__(
        self,
        format_type: OutputFormat = OutputFormat.TABLE,
        output_console: Console | None = None,
    ) -> None:
        self.format_type = format_type
        self.console = output_console or console

    @property
    def is_table(self) -> bool:
        """True when rendering human-readable tables."""
        return self.format_type == OutputFormat.TABLE

    def _print_structured(self, data: Any) -> None:
        if self.format_type == OutputFormat.JSON:
            self.console.print_json(json.dumps(data, indent=2, default=str))
        else:
            self.console.print(
                yaml.safe_dump(data, default_flow_style=False, sort_keys=False),
                highlight=False,
                markup=False,
            )

    def print_results(self, results: Sequence[OperationResult], title: str | None = None) -> None:
        """Print per-resource operation results.

        Args:
            results: Results to display.
            title: Optional table title.
        """
        if not self.is_table:
            self._print_structured([r.to_dict() for r in results])
            return

        show_target = any(r.target for r in results)

        table = Table(title=title, show_header=True)
        table.add_column("VMID", justify="right", style="cyan", no_wrap=True)
        table.add_column("Name", style="white")
        table.add_column("Node", style="white")
        table.add_column("Type", style="dim")
        if show_target:
            table.add_column("Target", style="magenta")
        table.add_column("Status", justify="center")
        table.add_column("Message", style="dim")

        for result in results:
            status = Text(result.status_text)
            status.stylize(result.outcome.color)

            row: list[Any] = [
                str(result.resource.vmid),
                _cell(result.resource.name),
                _cell(result.resource.node),
                result.resource.type.label,
            ]
            if show_target:
                row.append(_cell(result.target))
            row.extend([status, Text(result.message)])
            table.add_row(*row)

        self.console.print(table)

    def print_snapshots(self, snapshots: Sequence[Snapshot]) -> None:
        """Print a list of snapshots.

        Args:
            snapshots: Snapshots to display.
        """
        if not self.is_table:
            self._print_structured([s.to_dict() for s in snapshots])
            return

        table = Table(title="Snapshots", show_header=True)
        table.add_column("VMID", justify="right", style="cyan", no_wrap=True)
        table.add_column("Name", style="white")
        table.add_column("Node", style="white")
        table.add_column("Type", style="dim")
        table.add_column("Created", style="yellow")
        table.add_column("RAM", justify="center")
        table.add_column("Parent", style="dim")
        table.add_column("Description", style="dim")

        for snap in snapshots:
            table.add_row(
                str(snap.vmid) if snap.vmid is not None else "-",
                Text(snap.name),
                _cell(snap.node),
                snap.resource_type.label,
                snap.created_display,
                "yes" if snap.has_vmstate else "-",
                _cell(snap.parent),
                _cell((snap.description or "").strip()),
            )

        self.console.print(table)

    def print_snapshot_description(self, description: SnapshotDescription) -> None:
        """Print the details of a snapshot on each guest that has it.

        Args:
            description: Description returned by the snapshot service.
        """
        if not self.is_table:
            self._print_structured(description.to_dict())
            return

        for entry in description.entries:
            snap = entry.snapshot
            siblings = ", ".join(s.name for s in entry.siblings) or "-"
            panel = Panel(
                f"[bold]{escape(snap.name)}[/bold]\n\n"
                f"VMID: {snap.vmid}\n"
                f"Node: {escape(snap.node or 'N/A')}\n"
                f"Type: {snap.resource_type.label}\n"
                f"Created: {snap.created_display}\n"
                f"RAM state: {'yes' if snap.has_vmstate else 'no'}\n"
                f"Parent: {escape(snap.parent or 'N/A')}\n"
                f"Description: {escape((snap.description or '').strip() or 'N/A')}\n"
                f"Snapshots on guest: {escape(siblings)}",
                title="Snapshot",
                border_style="cyan",
            )
            self.console.print(panel)

    def print_guests(self, guests: Sequence[Guest]) -> None:
        """Print VMs and containers from the cluster inventory.

        Args:
            guests: Guests to display.
        """
        if not self.is_table:
            self._print_structured([g.to_dict() for g in guests])
            return

        table = Table(title="Guests", show_header=True)
        table.add_column("VMID", justify="right", style="cyan", no_wrap=True)
        table.add_column("Name", style="white")
        table.add_column("Node", style="white")
        table.add_column("Type", style="dim")
        table.add_column("Status", justify="center")
        table.add_column("CPUs", justify="right")
        table.add_column("CPU", justify="right")
        table.add_column("Memory", justify="right")
        table.add_column("Uptime", justify="right", style="dim")

        for guest in guests:
            status = Text(guest.status.value)
            status.stylize(guest.status.color)
            table.add_row(
                str(guest.vmid),
                _cell(guest.name),
                _cell(guest.node),
                "template" if guest.template else guest.type.label,
                status,
                _cell(guest.maxcpu),
                guest.cpu_display,
                guest.memory_display,
                guest.uptime_display,
            )

        self.console.print(table)

    def print_nodes(self, nodes: Sequence[Node]) -> None:
        """Print cluster nodes with usage and guest counts.

        Args:
            nodes: Nodes to display.
        """
        if not self.is_table:
            self._print_structured([n.to_dict() for n in nodes])
            return

        table = Table(title="Nodes", show_header=True)
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Status", justify="center")
        table.add_column("CPU", justify="right")
        table.add_column("Memory", justify="right")
        table.add_column("VMs", justify="right")
        table.add_column("CTs", justify="right")
        table.add_column("Uptime", justify="right", style="dim")

        for node in nodes:
            status = Text(node.status)
            status.stylize(node.status_color)
            table.add_row(
                Text(node.name),
                status,
                node.cpu_display,
                node.memory_display,
                str(node.guests_vms),
                str(node.guests_cts),
                node.uptime_display,
            )

        self.console.print(table)

    def print_backups(self, backups: Sequence[Backup]) -> None:
        """Print backup archives.

        Args:
            backups: Backups to display.
        """
        if not self.is_table:
            self._print_structured([b.to_dict() for b in backups])
            return

        table = Table(title="Backups", show_header=True)
        table.add_column("VMID", justify="right", style="cyan", no_wrap=True)
        table.add_column("Type", style="dim")
        table.add_column("Node", style="white")
        table.add_column("Storage", style="white")
        table.add_column("Volume", style="magenta")
        table.add_column("Created", style="yellow")
        table.add_column("Size", justify="right")
        table.add_column("Protected", justify="center")
        table.add_column("Notes", style="dim")

        for backup in backups:
            table.add_row(
                str(backup.vmid),
                backup.resource_type.label,
                Text(backup.node),
                Text(backup.storage),
                Text(backup.volid),
                backup.created_display,
                backup.size_display,
                "yes" if backup.protected else "-",
                _cell((backup.notes or "").strip()),
            )

        self.console.print(table)

    def print_contexts(self, contexts: Sequence[Context], current: str | None) -> None:
        """Print configured contexts, marking the current one.

        Args:
            contexts: Contexts from the configuration file.
            current: Name of the active context.
        """
        if not self.is_table:
            data = [
                {**c.to_dict(), "current": c.name == current}
                for c in contexts
            ]
            self._print_structured(data)
            return

        table = Table(show_header=True, box=None)
        table.add_column("CURRENT", justify="center", style="green")
        table.add_column("NAME", style="cyan", no_wrap=True)
        table.add_column("CLUSTER", style="white")
        table.add_column("USER", style="white")
        table.add_column("DEFAULT NODE", style="dim")

        for ctx in contexts:
            table.add_row(
                "*" if ctx.name == current else "",
                Text(ctx.name),
                _cell(ctx.cluster_ref),
                _cell(ctx.user_ref),
                _cell(ctx.default_node),
            )

        self.console.print(table)

    def print_dict(self, data: dict[str, Any], title: str | None = None) -> None:
        """Print a dictionary in the configured format.

        Table format prints the mapping as YAML, which keeps nested
        configuration readable.

        Args:
            data: Dictionary to display.
            title: Optional title for table format.
        """
        if not self.is_table:
            self._print_structured(data)
            return

        if title:
            self.console.print(f"[bold]{escape(title)}[/bold]")
        self.console.print(
            yaml.safe_dump(data, default_flow_style=False, sort_keys=False),
            highlight=False,
            markup=False,
        )


def print_success(message: str) -> None:
    """Print a success message.

    Args:
        message: Success message to display.
    """
    console.print(f"[green]✓[/green] {escape(message)}")


def print_error(message: str) -> None:
    """Print an error message to stderr.

    Args:
        message: Error message to display.
    """
    error_console.print(f"[red]✗[/red] {escape(message)}")


def print_warning(message: str) -> None:
    """Print a warning message to stderr.

    Args:
        message: Warning message to display.
    """
    error_console.print(f"[yellow]![/yellow] {escape(message)}")


def print_info(message: str) -> None:
    """Print an info message.

    Args:
        message: Info message to display.
    """
    console.print(f"[blue]ℹ[/blue] {escape(message)}")


def create_spinner_progress() -> Progress:
    """Create a simple spinner for blocking API operations.

    Returns:
        Progress instance with just spinner and description.
    """
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=error_console,
        transient=True,
    )
