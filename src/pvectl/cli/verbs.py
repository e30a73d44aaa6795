"""kubectl-style verb groups.

Resource modules attach their commands to these groups, so that
``pvectl get snapshots`` and ``pvectl get backups`` share one ``get``.
"""

from __future__ import annotations

import click


@click.group()
def get() -> None:
    """Display resources."""


@click.group()
def describe() -> None:
    """Show details of a resource."""


@click.group()
def create() -> None:
    """Create resources."""


@click.group()
def delete() -> None:
    """Delete resources."""


@click.group()
def rollback() -> None:
    """Roll resources back to an earlier state."""


@click.group()
def restore() -> None:
    """Restore resources from backups."""


VERB_GROUPS: list[click.Group] = [get, describe, create, delete, rollback, restore]
