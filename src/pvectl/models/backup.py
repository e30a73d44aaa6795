"""Backup archive model for pvectl."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pvectl.models.resource import ResourceType, format_bytes

_VOLID_VMID = re.compile(r"vzdump-(?:qemu|lxc)-(\d+)-|backup/(?:vm|ct)/(\d+)/")


def vmid_from_volid(volid: str) -> int | None:
    """VMID embedded in a vzdump or Proxmox Backup Server volume ID."""
    match = _VOLID_VMID.search(volid)
    if match is None:
        return None
    return int(match.group(1) or match.group(2))


def _archive_type(volid: str, subtype: str | None) -> ResourceType:
    if subtype:
        return ResourceType.from_api(subtype)
    if "vzdump-lxc" in volid or "/ct/" in volid:
        return ResourceType.LXC
    return ResourceType.QEMU


class Backup(BaseModel):
    """A vzdump archive stored on a backup-capable storage.

    Args:
        volid: Volume ID, e.g. ``local:backup/vzdump-qemu-100-2024_01_15-10_30_00.vma.zst``.
        vmid: Guest the archive was taken from.
        node: Node whose storage listing returned the archive.
        storage: Storage name, taken from the volid prefix.
        resource_type: QEMU or LXC archive.
        format: Archive format as reported by the storage.
        size: Archive size in bytes.
        ctime: Creation time as a Unix timestamp.
        notes: Free-form notes.
        protected: True if the archive is protected from pruning.

    Example:
        >>> backup = Backup.from_api(
        ...     {"volid": "local:backup/vzdump-lxc-200-2024_01_15-10_30_00.tar.zst",
        ...      "size": 1048576, "ctime": 1705314600},
        ...     node="pve1",
        ... )
        >>> backup.vmid, backup.storage, backup.resource_type.label
        (200, 'local', 'CT')
    """

    model_config = ConfigDict(frozen=True)

    volid: str
    vmid: int = Field(ge=1)
    node: str
    storage: str
    resource_type: ResourceType = ResourceType.QEMU
    format: str | None = None
    size: int | None = None
    ctime: int | None = None
    notes: str | None = None
    protected: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any], node: str) -> Backup:
        """Create a Backup from a storage content entry.

        The VMID falls back to the one embedded in the volid when the
        storage does not report it.

        Raises:
            ValueError: If neither source names a VMID.
        """
        volid = data["volid"]
        vmid = data.get("vmid") or vmid_from_volid(volid)
        if vmid is None:
            raise ValueError(f"Cannot determine VMID of backup {volid}")
        return cls(
            volid=volid,
            vmid=int(vmid),
            node=node,
            storage=volid.split(":", 1)[0],
            resource_type=_archive_type(volid, data.get("subtype")),
            format=data.get("format"),
            size=data.get("size"),
            ctime=data.get("ctime"),
            notes=data.get("notes"),
            protected=bool(data.get("protected")),
        )

    @property
    def filename(self) -> str:
        """Archive file name without the storage prefix."""
        return self.volid.rsplit("/", 1)[-1]

    @property
    def size_display(self) -> str:
        return format_bytes(self.size)

    @property
    def created_at(self) -> datetime | None:
        if self.ctime is None:
            return None
        return datetime.fromtimestamp(self.ctime)

    @property
    def created_display(self) -> str:
        created = self.created_at
        return created.strftime("%Y-%m-%d %H:%M:%S") if created else "-"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = self.model_dump(exclude_none=True)
        data["resource_type"] = self.resource_type.value
        return data
