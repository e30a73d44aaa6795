"""Snapshot commands for pvectl.

Attaches the ``snapshot`` resource to the get, describe, create,
delete and rollback verbs.
"""

from __future__ import annotations

from collections.abc import Sequence

import click

from pvectl.cli.context import Context, exit_with_error, pass_context
from pvectl.cli.options import build_operation_options, operation_options, vmid_list
from pvectl.cli.verbs import create, delete, describe, get, rollback
from pvectl.core.exceptions import PvectlError
from pvectl.utils.output import print_info


def _describe_targets(vmids: Sequence[int], node: str | None) -> str:
    if vmids:
        where = "VM " + ", ".join(str(v) for v in vmids)
    else:
        where = "all VMs and containers"
    if node:
        where += f" on node '{node}'"
    return where


@get.command("snapshots")
@click.argument("vmids", nargs=-1, type=click.IntRange(min=1))
@click.option("--node", "-n", default=None, help="Only guests on this node.")
@pass_context
def get_snapshots(ctx: Context, vmids: tuple[int, ...], node: str | None) -> None:
    """List snapshots.

    VMIDS are the guests to inspect; all guests when omitted.

    Examples:

        $ pvectl get snapshots

        $ pvectl get snapshots 100 101 -o json

        $ pvectl get snapshots --node pve2
    """
    ids = vmid_list(vmids)
    try:
        service = ctx.snapshot_service()
        snapshots = ctx.with_spinner(
            "Fetching snapshots...", lambda: service.list(ids, node=node)
        )
    except PvectlError as e:
        exit_with_error(e)

    if not snapshots and ctx.formatter.is_table:
        print_info("No snapshots found")
        return

    ctx.formatter.print_snapshots(snapshots)


@describe.command("snapshot")
@click.argument("name")
@click.option(
    "--vmid",
    "vmids",
    multiple=True,
    type=click.IntRange(min=1),
    help="Guest to search (repeatable; default: all).",
)
@click.option("--node", "-n", default=None, help="Only guests on this node.")
@pass_context
def describe_snapshot(
    ctx: Context, name: str, vmids: tuple[int, ...], node: str | None
) -> None:
    """Show a snapshot on every guest that has it.

    NAME is the snapshot name.

    Examples:

        $ pvectl describe snapshot before-upgrade

        $ pvectl describe snapshot before-upgrade --vmid 100
    """
    ids = vmid_list(vmids)
    try:
        service = ctx.snapshot_service()
        description = ctx.with_spinner(
            f"Looking up snapshot '{name}'...",
            lambda: service.describe(ids, name, node=node),
        )
    except PvectlError as e:
        exit_with_error(e)

    ctx.formatter.print_snapshot_description(description)


@create.command("snapshot")
@click.argument("vmids", nargs=-1, required=True, type=click.IntRange(min=1))
@click.option("--name", required=True, help="Snapshot name.")
@click.option("--description", "-d", default=None, help="Snapshot description.")
@click.option("--vmstate", is_flag=True, help="Include RAM state (VMs only).")
@click.option("--node", "-n", default=None, help="Only guests on this node.")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@operation_options
@pass_context
def create_snapshot(
    ctx: Context,
    vmids: tuple[int, ...],
    name: str,
    description: str | None,
    vmstate: bool,
    node: str | None,
    yes: bool,
    timeout: float | None,
    async_mode: bool,
    fail_fast: bool,
) -> None:
    """Create a snapshot on one or more guests.

    VMIDS are the guests to snapshot. Creating on more than one guest
    asks for confirmation unless --yes is given.

    Examples:

        $ pvectl create snapshot 100 --name before-upgrade

        $ pvectl create snapshot 100 101 --name nightly --vmstate --yes
    """
    ids = vmid_list(vmids)
    if len(ids) > 1 and not yes:
        click.confirm(
            f"Create snapshot '{name}' on {_describe_targets(ids, node)}?", abort=True
        )

    options = build_operation_options(timeout, async_mode, fail_fast)
    try:
        service = ctx.snapshot_service(options)
        results = ctx.with_spinner(
            f"Creating snapshot '{name}'...",
            lambda: service.create(
                ids, name, description=description, vmstate=vmstate, node=node
            ),
        )
    except PvectlError as e:
        exit_with_error(e)

    ctx.report_results(results, requested=bool(ids))


@delete.command("snapshot")
@click.argument("name", required=False)
@click.option(
    "--vmid",
    "vmids",
    multiple=True,
    type=click.IntRange(min=1),
    help="Guest to delete from (repeatable; default: all).",
)
@click.option("--all", "delete_all", is_flag=True, help="Delete every snapshot.")
@click.option("--node", "-n", default=None, help="Only guests on this node.")
@click.option("--force", "-f", is_flag=True, help="Remove even if a disk snapshot fails.")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@operation_options
@pass_context
def delete_snapshot(
    ctx: Context,
    name: str | None,
    vmids: tuple[int, ...],
    delete_all: bool,
    node: str | None,
    force: bool,
    yes: bool,
    timeout: float | None,
    async_mode: bool,
    fail_fast: bool,
) -> None:
    """Delete a snapshot, or all snapshots with --all.

    NAME is the snapshot to delete. Without --vmid it is removed from
    every guest that has it.

    Examples:

        $ pvectl delete snapshot before-upgrade --vmid 100

        $ pvectl delete snapshot before-upgrade --node pve1 --yes

        $ pvectl delete snapshot --all --vmid 100 --vmid 101
    """
    if delete_all and name is not None:
        raise click.UsageError("NAME cannot be combined with --all")
    if not delete_all and not name:
        raise click.UsageError("Provide a snapshot NAME or --all")

    ids = vmid_list(vmids)
    if not yes:
        what = "ALL snapshots" if delete_all else f"snapshot '{name}'"
        click.confirm(f"Delete {what} from {_describe_targets(ids, node)}?", abort=True)

    options = build_operation_options(timeout, async_mode, fail_fast)
    try:
        service = ctx.snapshot_service(options)
        if name is None:
            results = ctx.with_spinner(
                "Deleting snapshots...",
                lambda: service.delete_all(ids, force=force, node=node),
            )
        else:
            results = ctx.with_spinner(
                f"Deleting snapshot '{name}'...",
                lambda: service.delete(ids, name, force=force, node=node),
            )
    except PvectlError as e:
        exit_with_error(e)

    ctx.report_results(results, requested=bool(ids))


@rollback.command("snapshot")
@click.argument("vmid", type=click.IntRange(min=1))
@click.argument("name")
@click.option("--start", is_flag=True, help="Start the guest after rollback.")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@operation_options
@pass_context
def rollback_snapshot(
    ctx: Context,
    vmid: int,
    name: str,
    start: bool,
    yes: bool,
    timeout: float | None,
    async_mode: bool,
    fail_fast: bool,
) -> None:
    """Roll a guest back to a snapshot.

    VMID is the guest and NAME the snapshot to restore. The current
    state of the guest is lost.

    Examples:

        $ pvectl rollback snapshot 100 before-upgrade

        $ pvectl rollback snapshot 200 nightly --start --yes
    """
    if not yes:
        click.confirm(
            f"Roll back VM {vmid} to snapshot '{name}'? Current state will be lost.",
            abort=True,
        )

    options = build_operation_options(timeout, async_mode, fail_fast)
    try:
        service = ctx.snapshot_service(options)
        result = ctx.with_spinner(
            f"Rolling back {vmid} to '{name}'...",
            lambda: service.rollback(vmid, name, start=start),
        )
    except PvectlError as e:
        exit_with_error(e)

    ctx.report_results([result], requested=True)
