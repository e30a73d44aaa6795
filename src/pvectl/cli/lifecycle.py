"""Power state commands for pvectl.

Each verb (start, stop, shutdown, reboot, reset, suspend, resume) is a
group with ``vm`` and ``ct`` subcommands:

    $ pvectl start vm 100 101
    $ pvectl shutdown ct --all --node pve2 --wait
"""

from __future__ import annotations

import click

from pvectl.cli.context import Context, exit_with_error, pass_context
from pvectl.cli.options import build_operation_options, operation_options, vmid_list
from pvectl.core.exceptions import PvectlError
from pvectl.models.operation import Operation
from pvectl.models.resource import ResourceType

OPERATION_HELP = {
    Operation.START: "Start guests.",
    Operation.STOP: "Stop guests immediately (like pulling the plug).",
    Operation.SHUTDOWN: "Shut guests down gracefully.",
    Operation.REBOOT: "Reboot guests gracefully.",
    Operation.RESET: "Reset VMs (hard reboot).",
    Operation.SUSPEND: "Suspend guests.",
    Operation.RESUME: "Resume suspended guests.",
}


def _make_command(operation: Operation, resource_type: ResourceType) -> click.Command:
    noun = "containers" if resource_type is ResourceType.LXC else "virtual machines"
    kind = "ct" if resource_type is ResourceType.LXC else "vm"

    @click.command(kind)
    @click.argument("vmids", nargs=-1, type=click.IntRange(min=1))
    @click.option("--all", "all_guests", is_flag=True, help=f"Act on all {noun}.")
    @click.option("--node", "-n", default=None, help="Only guests on this node.")
    @click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
    @click.option("--wait", is_flag=True, help="Wait for the task to finish.")
    @operation_options
    @pass_context
    def command(
        ctx: Context,
        vmids: tuple[int, ...],
        all_guests: bool,
        node: str | None,
        yes: bool,
        wait: bool,
        timeout: float | None,
        async_mode: bool,
        fail_fast: bool,
    ) -> None:
        if vmids and all_guests:
            raise click.UsageError("VMIDs cannot be combined with --all")
        if not vmids and not all_guests:
            raise click.UsageError("Provide one or more VMIDs or --all")

        ids = vmid_list(vmids)
        if all_guests and not yes:
            where = f" on node '{node}'" if node else ""
            click.confirm(f"{operation.value.capitalize()} all {noun}{where}?", abort=True)

        options = build_operation_options(timeout, async_mode, fail_fast, wait=wait)
        try:
            service = ctx.lifecycle_service(options)
            results = ctx.with_spinner(
                f"Running {operation.value}...",
                lambda: service.execute(operation, ids, node=node, resource_type=resource_type),
            )
        except PvectlError as e:
            exit_with_error(e)

        ctx.report_results(results, requested=bool(ids), noun=noun)

    command.help = (
        f"{OPERATION_HELP[operation]}\n\n"
        f"VMIDS are the {noun} to {operation.value}; use --all for every one.\n\n"
        "Examples:\n\n"
        f"    $ pvectl {operation.value} {kind} 100 101\n\n"
        f"    $ pvectl {operation.value} {kind} --all --node pve1 --yes"
    )
    return command


def _make_group(operation: Operation) -> click.Group:
    group = click.Group(operation.value, help=OPERATION_HELP[operation])
    group.add_command(_make_command(operation, ResourceType.QEMU))
    if operation is not Operation.RESET:
        group.add_command(_make_command(operation, ResourceType.LXC))
    return group


LIFECYCLE_GROUPS: list[click.Group] = [_make_group(op) for op in OPERATION_HELP]
