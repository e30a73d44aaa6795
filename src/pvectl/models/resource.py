"""Cluster resource references for pvectl.

A ResourceRef identifies one guest (QEMU VM or LXC container) by its
VMID together with the node it currently lives on.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

_BYTE_UNITS = ("B", "KiB", "MiB", "GiB", "TiB")


def format_bytes(size: int | float | None) -> str:
    """Human-readable binary size.

    Example:
        >>> format_bytes(1610612736)
        '1.5 GiB'
    """
    if size is None:
        return "-"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_BYTE_UNITS) - 1:
        value /= 1024
        unit += 1
    if unit == 0:
        return f"{int(value)} B"
    return f"{value:.1f} {_BYTE_UNITS[unit]}"


class ResourceType(str, Enum):
    """Guest kinds known to the Proxmox API."""

    QEMU = "qemu"
    LXC = "lxc"

    @property
    def label(self) -> str:
        """Short human-readable label ("VM" or "CT")."""
        return "CT" if self is ResourceType.LXC else "VM"

    @classmethod
    def from_api(cls, value: str | None) -> ResourceType:
        """Map a ``cluster/resources`` type string to a ResourceType."""
        return cls.LXC if value == "lxc" else cls.QEMU


class ResourceRef(BaseModel):
    """A resolved guest: VMID, node and kind.

    Args:
        vmid: Numeric VM/container identifier.
        node: Node the guest currently runs on.
        type: QEMU VM or LXC container.
        name: Guest name, if known.

    Example:
        >>> ref = ResourceRef(vmid=100, node="pve1", type=ResourceType.QEMU)
        >>> ref.api_path
        'nodes/pve1/qemu/100'
    """

    model_config = ConfigDict(frozen=True)

    vmid: int = Field(ge=1)
    node: str | None = None
    type: ResourceType = ResourceType.QEMU
    name: str | None = None

    @property
    def api_path(self) -> str:
        """Base API path for this guest."""
        return f"nodes/{self.node}/{self.type.value}/{self.vmid}"

    @property
    def display_name(self) -> str:
        """Human-readable identifier, e.g. ``100 (web-1)``."""
        if self.name:
            return f"{self.vmid} ({self.name})"
        return str(self.vmid)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        data = self.model_dump(exclude_none=True)
        data["type"] = self.type.value
        return data
