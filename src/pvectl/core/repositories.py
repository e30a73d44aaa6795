"""Repositories for Proxmox API resources.

Each repository turns one family of REST endpoints into typed calls.
Mutating calls return the UPID of the task the API started.
"""

from __future__ import annotations

import builtins
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from pvectl.core.exceptions import ApiError, TaskTimeoutError
from pvectl.models.backup import Backup, vmid_from_volid
from pvectl.models.guest import Guest, Node
from pvectl.models.operation import Operation
from pvectl.models.resource import ResourceRef, ResourceType
from pvectl.models.snapshot import CURRENT_SNAPSHOT, Snapshot
from pvectl.models.task import Task, node_from_upid
from pvectl.utils.logging import get_logger

if TYPE_CHECKING:
    from pvectl.core.connection import Connection

logger = get_logger("repositories")

DEFAULT_TASK_TIMEOUT = 60
DEFAULT_POLL_INTERVAL = 2


class TaskRepository:
    """Reads and waits for asynchronous Proxmox tasks.

    Args:
        connection: API connection.
        sleep: Sleep function used between polls.
        clock: Monotonic clock used for the deadline.
    """

    def __init__(
        self,
        connection: Connection,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.connection = connection
        self._sleep = sleep or time.sleep
        self._clock = clock or time.monotonic

    def find(self, upid: str) -> Task:
        """Fetch the current status of a task.

        Raises:
            ValueError: If ``upid`` is not a UPID.
        """
        node = node_from_upid(upid)
        data = self.connection.get(f"nodes/{node}/tasks/{quote(upid, safe='')}/status") or {}
        return Task.model_validate({**data, "upid": upid, "node": data.get("node") or node})

    def wait(
        self,
        upid: str,
        timeout: float = DEFAULT_TASK_TIMEOUT,
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> Task:
        """Poll a task until it leaves the running state.

        Args:
            upid: Task to wait for.
            timeout: Seconds to wait before giving up.
            interval: Seconds between polls.

        Returns:
            The completed task.

        Raises:
            TaskTimeoutError: If the task is still running after ``timeout``.
        """
        deadline = self._clock() + timeout
        logger.debug(f"Waiting up to {timeout}s for task {upid}")

        while True:
            task = self.find(upid)
            if task.completed:
                logger.debug(f"Task {upid} finished: {task.exitstatus}")
                return task

            if self._clock() >= deadline:
                raise TaskTimeoutError(upid, timeout)

            self._sleep(interval)


class SnapshotRepository:
    """Snapshot endpoints of QEMU VMs and LXC containers."""

    def __init__(self, connection: Connection) -> None:
        self.connection = connection

    def list(self, resource: ResourceRef) -> list[Snapshot]:
        """List a guest's snapshots, without the ``current`` pseudo-entry."""
        entries = self.connection.get(f"{resource.api_path}/snapshot") or []
        return [
            Snapshot(
                name=entry["name"],
                snaptime=entry.get("snaptime"),
                description=entry.get("description"),
                vmstate=entry.get("vmstate"),
                parent=entry.get("parent"),
                vmid=resource.vmid,
                node=resource.node,
                resource_type=resource.type,
            )
            for entry in entries
            if entry.get("name") and entry["name"] != CURRENT_SNAPSHOT
        ]

    def create(
        self,
        resource: ResourceRef,
        name: str,
        description: str | None = None,
        vmstate: bool = False,
    ) -> str:
        """Create a snapshot. ``vmstate`` applies to QEMU guests only.

        Returns:
            UPID of the snapshot task.
        """
        params: dict[str, Any] = {"snapname": name}
        if description:
            params["description"] = description
        if vmstate and resource.type is ResourceType.QEMU:
            params["vmstate"] = True
        return self.connection.post(f"{resource.api_path}/snapshot", params)

    def delete(self, resource: ResourceRef, name: str, force: bool = False) -> str:
        """Delete a snapshot.

        Returns:
            UPID of the delete task.
        """
        params = {"force": True} if force else None
        return self.connection.delete(f"{resource.api_path}/snapshot/{quote(name)}", params)

    def rollback(self, resource: ResourceRef, name: str, start: bool = False) -> str:
        """Roll a guest back to a snapshot.

        Returns:
            UPID of the rollback task.
        """
        params = {"start": True} if start else None
        return self.connection.post(f"{resource.api_path}/snapshot/{quote(name)}/rollback", params)


class GuestRepository:
    """Power state endpoints of QEMU VMs and LXC containers."""

    ACTIONS = {
        Operation.START: "start",
        Operation.STOP: "stop",
        Operation.SHUTDOWN: "shutdown",
        Operation.REBOOT: "reboot",
        Operation.RESET: "reset",
        Operation.SUSPEND: "suspend",
        Operation.RESUME: "resume",
    }

    def __init__(self, connection: Connection) -> None:
        self.connection = connection

    def list(
        self,
        resource_type: ResourceType | None = None,
        node: str | None = None,
    ) -> list[Guest]:
        """List guests from the cluster inventory, ordered by VMID.

        Args:
            resource_type: Only guests of this kind.
            node: Only guests on this node.
        """
        entries = self.connection.get("cluster/resources", params={"type": "vm"}) or []
        guests = [Guest.from_api(entry) for entry in entries if entry.get("vmid") is not None]
        if resource_type is not None:
            guests = [g for g in guests if g.type is resource_type]
        if node is not None:
            guests = [g for g in guests if g.node == node]
        return sorted(guests, key=lambda g: g.vmid)

    def action(self, resource: ResourceRef, operation: Operation) -> str:
        """Trigger a power action.

        Returns:
            UPID of the started task.

        Raises:
            ValueError: If the operation is not a power action.
        """
        action = self.ACTIONS.get(operation)
        if action is None:
            raise ValueError(f"Not a power action: {operation.value}")
        logger.debug(f"{action} {resource.type.value}/{resource.vmid} on {resource.node}")
        return self.connection.post(f"{resource.api_path}/status/{action}")


class NodeRepository:
    """Cluster node listing with per-node guest counts."""

    def __init__(self, connection: Connection) -> None:
        self.connection = connection

    def list(self) -> list[Node]:
        """List nodes sorted by name."""
        entries = self.connection.get("nodes") or []
        counts = self._guest_counts()
        nodes = []
        for entry in entries:
            name = entry.get("node")
            if not name:
                continue
            vms, cts = counts.get(name, (0, 0))
            nodes.append(
                Node(
                    name=name,
                    status=entry.get("status") or "unknown",
                    cpu=entry.get("cpu"),
                    maxcpu=entry.get("maxcpu"),
                    mem=entry.get("mem"),
                    maxmem=entry.get("maxmem"),
                    disk=entry.get("disk"),
                    maxdisk=entry.get("maxdisk"),
                    uptime=entry.get("uptime"),
                    guests_vms=vms,
                    guests_cts=cts,
                )
            )
        return sorted(nodes, key=lambda n: n.name)

    def _guest_counts(self) -> dict[str, tuple[int, int]]:
        entries = self.connection.get("cluster/resources", params={"type": "vm"}) or []
        counts: dict[str, tuple[int, int]] = {}
        for entry in entries:
            node = entry.get("node")
            if not node:
                continue
            vms, cts = counts.get(node, (0, 0))
            if entry.get("type") == "lxc":
                cts += 1
            else:
                vms += 1
            counts[node] = (vms, cts)
        return counts


class BackupRepository:
    """vzdump backups: listing, creation, deletion and restore.

    Listing without a node or storage walks every node and every
    storage whose content types include ``backup``.
    """

    def __init__(self, connection: Connection) -> None:
        self.connection = connection

    def list(
        self,
        vmid: int | None = None,
        storage: str | None = None,
        node: str | None = None,
    ) -> list[Backup]:
        """List backup archives.

        Args:
            vmid: Only archives of this guest.
            storage: Only this storage, on the nodes where it holds backups.
            node: Only this node.

        Returns:
            Backups in listing order. A shared storage is reported once
            per node that mounts it. Storages that cannot be read are
            skipped with a warning.
        """
        nodes = [node] if node else self._nodes()
        backups: list[Backup] = []
        for name in nodes:
            storages = [s for s in self._backup_storages(name) if storage in (None, s)]
            for store in storages:
                try:
                    backups.extend(self._list_storage(name, store, vmid))
                except ApiError as e:
                    logger.warning(f"Could not list backups on {store}@{name}: {e}")
        return backups

    def create(
        self,
        resource: ResourceRef,
        storage: str,
        mode: str = "snapshot",
        compress: str = "zstd",
        notes: str | None = None,
        protected: bool = False,
    ) -> str:
        """Start a vzdump backup of one guest.

        Returns:
            UPID of the backup task.
        """
        params: dict[str, Any] = {
            "vmid": resource.vmid,
            "storage": storage,
            "mode": mode,
            "compress": compress,
            "notes-template": notes,
            "protected": True if protected else None,
        }
        logger.debug(f"vzdump {resource.vmid} on {resource.node} to {storage}")
        return self.connection.post(f"nodes/{resource.node}/vzdump", params)

    def delete(self, backup: Backup) -> str:
        """Delete a backup archive.

        Returns:
            UPID of the delete task.
        """
        volume = quote(backup.volid, safe="")
        path = f"nodes/{backup.node}/storage/{backup.storage}/content/{volume}"
        return self.connection.delete(path)

    def restore(
        self,
        backup: Backup,
        vmid: int,
        storage: str | None = None,
        force: bool = False,
        start: bool = False,
        unique: bool = False,
    ) -> str:
        """Restore an archive into guest ``vmid`` on the archive's node.

        QEMU archives are restored through ``archive``; container
        archives through ``ostemplate`` with ``restore`` set.

        Returns:
            UPID of the restore task.
        """
        params: dict[str, Any] = {
            "vmid": vmid,
            "storage": storage,
            "force": True if force else None,
            "start": True if start else None,
            "unique": True if unique else None,
        }
        if backup.resource_type is ResourceType.LXC:
            params.update({"ostemplate": backup.volid, "restore": True})
        else:
            params["archive"] = backup.volid
        return self.connection.post(f"nodes/{backup.node}/{backup.resource_type.value}", params)

    def _nodes(self) -> builtins.list[str]:
        entries = self.connection.get("nodes") or []
        return [e["node"] for e in entries if e.get("node")]

    def _backup_storages(self, node: str) -> builtins.list[str]:
        entries = self.connection.get(f"nodes/{node}/storage") or []
        return [
            e["storage"]
            for e in entries
            if e.get("storage") and "backup" in (e.get("content") or "").split(",")
        ]

    def _list_storage(
        self, node: str, storage: str, vmid: int | None
    ) -> builtins.list[Backup]:
        params: dict[str, Any] = {"content": "backup"}
        if vmid is not None:
            params["vmid"] = vmid
        entries = self.connection.get(f"nodes/{node}/storage/{storage}/content", params) or []
        backups = []
        for entry in entries:
            volid = entry.get("volid")
            if not volid:
                continue
            if not entry.get("vmid") and vmid_from_volid(volid) is None:
                logger.debug(f"Skipping {volid}: no VMID")
                continue
            backups.append(Backup.from_api(entry, node))
        if vmid is not None:
            backups = [b for b in backups if b.vmid == vmid]
        return backups
