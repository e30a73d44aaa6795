"""Cluster inventory listings: ``get vms``, ``get ct`` and ``get nodes``."""

from __future__ import annotations

import click

from pvectl.cli.context import Context, exit_with_error, pass_context
from pvectl.cli.verbs import get
from pvectl.core.exceptions import PvectlError
from pvectl.models.guest import GuestStatus
from pvectl.models.resource import ResourceType
from pvectl.utils.output import print_info

STATUS_CHOICES = [s.value for s in GuestStatus if s is not GuestStatus.UNKNOWN]


def _list_guests(
    ctx: Context,
    resource_type: ResourceType,
    node: str | None,
    status: str | None,
) -> None:
    noun = "containers" if resource_type is ResourceType.LXC else "VMs"
    try:
        repository = ctx.guest_repository()
        guests = ctx.with_spinner(
            f"Fetching {noun}...",
            lambda: repository.list(resource_type=resource_type, node=node),
        )
    except PvectlError as e:
        exit_with_error(e)

    if status is not None:
        guests = [g for g in guests if g.status.value == status]

    if not guests and ctx.formatter.is_table:
        print_info(f"No {noun} found")
        return

    ctx.formatter.print_guests(guests)


@get.command("vms")
@click.option("--node", "-n", default=None, help="Only VMs on this node.")
@click.option(
    "--status", type=click.Choice(STATUS_CHOICES), default=None, help="Only VMs in this state."
)
@pass_context
def get_vms(ctx: Context, node: str | None, status: str | None) -> None:
    """List QEMU virtual machines.

    Examples:

        $ pvectl get vms

        $ pvectl get vms --node pve1 --status running -o json
    """
    _list_guests(ctx, ResourceType.QEMU, node, status)


@get.command("ct")
@click.option("--node", "-n", default=None, help="Only containers on this node.")
@click.option(
    "--status",
    type=click.Choice(STATUS_CHOICES),
    default=None,
    help="Only containers in this state.",
)
@pass_context
def get_containers(ctx: Context, node: str | None, status: str | None) -> None:
    """List LXC containers.

    Examples:

        $ pvectl get ct

        $ pvectl get ct --status stopped
    """
    _list_guests(ctx, ResourceType.LXC, node, status)


@get.command("nodes")
@pass_context
def get_nodes(ctx: Context) -> None:
    """List cluster nodes with resource usage and guest counts.

    Examples:

        $ pvectl get nodes

        $ pvectl get nodes -o yaml
    """
    try:
        repository = ctx.node_repository()
        nodes = ctx.with_spinner("Fetching nodes...", repository.list)
    except PvectlError as e:
        exit_with_error(e)

    if not nodes and ctx.formatter.is_table:
        print_info("No nodes found")
        return

    ctx.formatter.print_nodes(nodes)
