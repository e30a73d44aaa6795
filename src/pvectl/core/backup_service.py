"""vzdump backup operations."""

from __future__ import annotations

import builtins
from collections.abc import Sequence
from dataclasses import replace
from typing import TYPE_CHECKING

from pvectl.core.exceptions import ResourceNotFoundError
from pvectl.core.orchestration import MultiResourceService, OperationOptions
from pvectl.models.backup import Backup
from pvectl.models.operation import Operation, OperationResult
from pvectl.models.resource import ResourceRef
from pvectl.utils.logging import get_logger

if TYPE_CHECKING:
    from pvectl.core.repositories import BackupRepository, TaskRepository
    from pvectl.core.resolver import ResourceResolver

logger = get_logger("backups")

# vzdump and restore tasks run far longer than snapshot tasks
DEFAULT_BACKUP_TIMEOUT = 300

BACKUP_MODES = ("snapshot", "suspend", "stop")
COMPRESSION_TYPES = ("zstd", "gzip", "lzo", "0")


class BackupService(MultiResourceService):
    """Lists, creates, deletes and restores vzdump backups.

    Creation fans out over guests like the other services. Deletion
    and restore address a single archive by its volume ID.

    Args:
        backup_repository: Backup endpoints.
        resolver: Resolver mapping VMIDs to guests.
        task_repository: Repository used to wait for tasks.
        options: Execution options. Without a timeout, tasks are
            waited on for up to five minutes.

    Example:
        >>> service = BackupService(backups, resolver, tasks)
        >>> results = service.create([100], storage="local")
        >>> results[0].target
        'local'
    """

    def __init__(
        self,
        backup_repository: BackupRepository,
        resolver: ResourceResolver,
        task_repository: TaskRepository,
        options: OperationOptions | None = None,
    ) -> None:
        options = options or OperationOptions()
        if options.timeout is None:
            options = replace(options, timeout=DEFAULT_BACKUP_TIMEOUT)
        super().__init__(resolver, task_repository, options)
        self.backup_repository = backup_repository

    def list(
        self,
        vmids: Sequence[int] = (),
        node: str | None = None,
        storage: str | None = None,
    ) -> builtins.list[Backup]:
        """List backups, newest first within each guest.

        Args:
            vmids: Only archives of these guests; empty means all.
            node: Only storages on this node.
            storage: Only this storage.

        Returns:
            Backups sorted by VMID. An archive on shared storage is
            listed once.
        """
        single = vmids[0] if len(vmids) == 1 else None
        found = self.backup_repository.list(vmid=single, storage=storage, node=node)

        wanted = set(vmids)
        seen: set[str] = set()
        backups: list[Backup] = []
        for backup in found:
            if backup.volid in seen or (wanted and backup.vmid not in wanted):
                continue
            seen.add(backup.volid)
            backups.append(backup)

        backups.sort(key=lambda b: -(b.ctime or 0))
        backups.sort(key=lambda b: b.vmid)
        return backups

    def find(self, volid: str, node: str | None = None) -> Backup:
        """Look up one archive by volume ID.

        Raises:
            ResourceNotFoundError: If no storage holds ``volid``.
        """
        storage = volid.split(":", 1)[0]
        for backup in self.backup_repository.list(storage=storage, node=node):
            if backup.volid == volid:
                return backup
        raise ResourceNotFoundError(f"Backup '{volid}' not found")

    def create(
        self,
        vmids: Sequence[int],
        storage: str,
        mode: str = "snapshot",
        compress: str = "zstd",
        notes: str | None = None,
        protected: bool = False,
        node: str | None = None,
    ) -> builtins.list[OperationResult]:
        """Back up each guest to ``storage``.

        Args:
            vmids: Guests to back up; empty means every guest.
            storage: Target storage.
            mode: One of ``snapshot``, ``suspend`` or ``stop``.
            compress: Compression algorithm, ``0`` for none.
            notes: Notes template stored with the archive.
            protected: Protect the archive from pruning.
            node: Only guests on this node.

        Raises:
            ValueError: If ``mode`` or ``compress`` is not recognised.
        """
        if mode not in BACKUP_MODES:
            raise ValueError(f"Unknown backup mode: {mode}. Valid: {', '.join(BACKUP_MODES)}")
        if compress not in COMPRESSION_TYPES:
            raise ValueError(
                f"Unknown compression: {compress}. Valid: {', '.join(COMPRESSION_TYPES)}"
            )

        resources = self.filter_by_node(self.resolve_resources(vmids), node)
        return self.execute_multi(
            resources,
            Operation.CREATE,
            lambda r: self.backup_repository.create(
                r,
                storage,
                mode=mode,
                compress=compress,
                notes=notes,
                protected=protected,
            ),
            target=storage,
        )

    def delete(self, volid: str, node: str | None = None) -> OperationResult:
        """Delete one archive.

        Raises:
            ResourceNotFoundError: If the archive does not exist.
        """
        backup = self.find(volid, node)
        resource = ResourceRef(vmid=backup.vmid, node=backup.node, type=backup.resource_type)
        return self.execute_single(
            resource,
            Operation.DELETE,
            lambda _: self.backup_repository.delete(backup),
            target=volid,
        )

    def restore(
        self,
        volid: str,
        vmid: int,
        storage: str | None = None,
        force: bool = False,
        start: bool = False,
        unique: bool = False,
        node: str | None = None,
    ) -> OperationResult:
        """Restore an archive into guest ``vmid``.

        Args:
            volid: Archive to restore.
            vmid: Target VMID; may differ from the archive's.
            storage: Storage for the restored disks.
            force: Overwrite an existing guest with this VMID.
            start: Start the guest afterwards.
            unique: Regenerate MAC addresses and other unique settings.
            node: Node whose storage holds the archive; the restore
                runs there.

        Raises:
            ValueError: If ``vmid`` is not a positive integer.
            ResourceNotFoundError: If the archive does not exist.
        """
        if vmid < 1:
            raise ValueError(f"VMID must be a positive integer, got {vmid}")

        backup = self.find(volid, node)
        resource = ResourceRef(vmid=vmid, node=backup.node, type=backup.resource_type)
        logger.info(f"Restoring {volid} to {resource.type.label} {vmid} on {backup.node}")
        return self.execute_single(
            resource,
            Operation.RESTORE,
            lambda _: self.backup_repository.restore(
                backup,
                vmid,
                storage=storage,
                force=force,
                start=start,
                unique=unique,
            ),
            target=volid,
        )
