"""Backup commands for pvectl.

Attaches the ``backup`` resource to the get, create, delete and
restore verbs. Archives are addressed by volume ID, e.g.
``local:backup/vzdump-qemu-100-2024_01_15-10_30_00.vma.zst``.
"""

from __future__ import annotations

import click

from pvectl.cli.context import Context, exit_with_error, pass_context
from pvectl.cli.options import build_operation_options, operation_options, vmid_list
from pvectl.cli.verbs import create, delete, get, restore
from pvectl.core.backup_service import BACKUP_MODES, COMPRESSION_TYPES
from pvectl.core.exceptions import PvectlError
from pvectl.utils.output import print_info


@get.command("backups")
@click.argument("vmids", nargs=-1, type=click.IntRange(min=1))
@click.option("--node", "-n", default=None, help="Only storages on this node.")
@click.option("--storage", "-s", default=None, help="Only this storage.")
@pass_context
def get_backups(
    ctx: Context, vmids: tuple[int, ...], node: str | None, storage: str | None
) -> None:
    """List backups.

    VMIDS are the guests whose archives to list; all when omitted.

    Examples:

        $ pvectl get backups

        $ pvectl get backups 100 --storage pbs -o yaml
    """
    ids = vmid_list(vmids)
    try:
        service = ctx.backup_service()
        backups = ctx.with_spinner(
            "Fetching backups...",
            lambda: service.list(ids, node=node, storage=storage),
        )
    except PvectlError as e:
        exit_with_error(e)

    if not backups and ctx.formatter.is_table:
        print_info("No backups found")
        return

    ctx.formatter.print_backups(backups)


@create.command("backup")
@click.argument("vmids", nargs=-1, required=True, type=click.IntRange(min=1))
@click.option("--storage", "-s", required=True, help="Target storage.")
@click.option(
    "--mode",
    type=click.Choice(BACKUP_MODES),
    default="snapshot",
    show_default=True,
    help="Backup mode.",
)
@click.option(
    "--compress",
    type=click.Choice(COMPRESSION_TYPES),
    default="zstd",
    show_default=True,
    help="Compression ('0' for none).",
)
@click.option("--notes", default=None, help="Notes stored with the archive.")
@click.option("--protected", is_flag=True, help="Protect the archive from pruning.")
@click.option("--node", "-n", default=None, help="Only guests on this node.")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@operation_options
@pass_context
def create_backup(
    ctx: Context,
    vmids: tuple[int, ...],
    storage: str,
    mode: str,
    compress: str,
    notes: str | None,
    protected: bool,
    node: str | None,
    yes: bool,
    timeout: float | None,
    async_mode: bool,
    fail_fast: bool,
) -> None:
    """Back up one or more guests with vzdump.

    VMIDS are the guests to back up. Backing up more than one guest
    asks for confirmation unless --yes is given. Tasks are waited on
    for up to 300 seconds unless --timeout says otherwise.

    Examples:

        $ pvectl create backup 100 --storage local

        $ pvectl create backup 100 101 -s pbs --mode stop --protected --yes
    """
    ids = vmid_list(vmids)
    if len(ids) > 1 and not yes:
        targets = ", ".join(str(v) for v in ids)
        click.confirm(f"Back up VM {targets} to storage '{storage}'?", abort=True)

    options = build_operation_options(timeout, async_mode, fail_fast)
    try:
        service = ctx.backup_service(options)
        results = ctx.with_spinner(
            f"Backing up to '{storage}'...",
            lambda: service.create(
                ids,
                storage,
                mode=mode,
                compress=compress,
                notes=notes,
                protected=protected,
                node=node,
            ),
        )
    except PvectlError as e:
        exit_with_error(e)

    ctx.report_results(results, requested=True)


@delete.command("backup")
@click.argument("volid")
@click.option("--node", "-n", default=None, help="Node whose storage holds the archive.")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@operation_options
@pass_context
def delete_backup(
    ctx: Context,
    volid: str,
    node: str | None,
    yes: bool,
    timeout: float | None,
    async_mode: bool,
    fail_fast: bool,
) -> None:
    """Delete a backup archive.

    VOLID is the archive's volume ID as shown by 'pvectl get backups'.

    Examples:

        $ pvectl delete backup local:backup/vzdump-qemu-100-2024_01_15-10_30_00.vma.zst
    """
    if not yes:
        click.confirm(f"Delete backup '{volid}'?", abort=True)

    options = build_operation_options(timeout, async_mode, fail_fast)
    try:
        service = ctx.backup_service(options)
        result = ctx.with_spinner(
            "Deleting backup...", lambda: service.delete(volid, node=node)
        )
    except PvectlError as e:
        exit_with_error(e)

    ctx.report_results([result], requested=True)


@restore.command("backup")
@click.argument("volid")
@click.option(
    "--vmid",
    required=True,
    type=click.IntRange(min=1),
    help="VMID to restore into.",
)
@click.option("--storage", "-s", default=None, help="Storage for the restored disks.")
@click.option("--node", "-n", default=None, help="Node whose storage holds the archive.")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing guest.")
@click.option("--start", is_flag=True, help="Start the guest after restore.")
@click.option("--unique", is_flag=True, help="Regenerate MAC addresses and unique IDs.")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@operation_options
@pass_context
def restore_backup(
    ctx: Context,
    volid: str,
    vmid: int,
    storage: str | None,
    node: str | None,
    force: bool,
    start: bool,
    unique: bool,
    yes: bool,
    timeout: float | None,
    async_mode: bool,
    fail_fast: bool,
) -> None:
    """Restore a backup archive into a guest.

    VOLID is the archive to restore. With --force an existing guest
    with the target VMID is overwritten.

    Examples:

        $ pvectl restore backup local:backup/vzdump-qemu-100-2024_01_15-10_30_00.vma.zst --vmid 300

        $ pvectl restore backup pbs:backup/ct/200/2024-01-15T10:30:00Z --vmid 200 --force --yes
    """
    if not yes:
        what = f"overwriting guest {vmid}" if force else f"as guest {vmid}"
        click.confirm(f"Restore '{volid}' {what}?", abort=True)

    options = build_operation_options(timeout, async_mode, fail_fast)
    try:
        service = ctx.backup_service(options)
        result = ctx.with_spinner(
            f"Restoring into {vmid}...",
            lambda: service.restore(
                volid,
                vmid,
                storage=storage,
                force=force,
                start=start,
                unique=unique,
                node=node,
            ),
        )
    except PvectlError as e:
        exit_with_error(e)

    ctx.report_results([result], requested=True)
