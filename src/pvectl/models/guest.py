"""Cluster inventory models for pvectl.

Guests (QEMU VMs and LXC containers) and nodes as listed by
``cluster/resources`` and ``nodes``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pvectl.models.resource import ResourceRef, ResourceType, format_bytes


class GuestStatus(str, Enum):
    """Power states reported for a guest."""

    RUNNING = "running"
    STOPPED = "stopped"
    PAUSED = "paused"
    SUSPENDED = "suspended"
    UNKNOWN = "unknown"

    @property
    def color(self) -> str:
        """Rich color for this state."""
        colors = {
            GuestStatus.RUNNING: "green",
            GuestStatus.STOPPED: "red",
            GuestStatus.PAUSED: "yellow",
            GuestStatus.SUSPENDED: "blue",
        }
        return colors.get(self, "dim")

    @classmethod
    def from_api(cls, value: str | None) -> GuestStatus:
        try:
            return cls(value or "unknown")
        except ValueError:
            return cls.UNKNOWN


def _percent(used: float | None, total: float | None) -> str:
    if used is None or not total:
        return "-"
    return f"{used / total * 100:.0f}%"


class Guest(BaseModel):
    """A VM or container from the cluster inventory.

    Args:
        vmid: Numeric identifier.
        name: Guest name.
        node: Node hosting the guest.
        type: QEMU VM or LXC container.
        status: Power state.
        cpu: CPU usage as a fraction of ``maxcpu``.
        maxcpu: Allocated cores.
        mem: Used memory in bytes.
        maxmem: Allocated memory in bytes.
        maxdisk: Root disk size in bytes.
        uptime: Seconds since start.
        template: True for templates.
        tags: Semicolon-separated tags.

    Example:
        >>> guest = Guest.from_api({"vmid": 100, "node": "pve1", "type": "qemu",
        ...                         "status": "running", "maxmem": 4294967296})
        >>> guest.memory_display
        '4.0 GiB'
    """

    model_config = ConfigDict(frozen=True)

    vmid: int = Field(ge=1)
    name: str | None = None
    node: str | None = None
    type: ResourceType = ResourceType.QEMU
    status: GuestStatus = GuestStatus.UNKNOWN
    cpu: float | None = None
    maxcpu: int | None = None
    mem: int | None = None
    maxmem: int | None = None
    maxdisk: int | None = None
    uptime: int | None = None
    template: bool = False
    tags: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Guest:
        """Create a Guest from a ``cluster/resources`` entry."""
        return cls(
            vmid=int(data["vmid"]),
            name=data.get("name"),
            node=data.get("node"),
            type=ResourceType.from_api(data.get("type")),
            status=GuestStatus.from_api(data.get("status")),
            cpu=data.get("cpu"),
            maxcpu=data.get("maxcpu"),
            mem=data.get("mem"),
            maxmem=data.get("maxmem"),
            maxdisk=data.get("maxdisk"),
            uptime=data.get("uptime"),
            template=bool(data.get("template")),
            tags=data.get("tags"),
        )

    @property
    def ref(self) -> ResourceRef:
        """The ResourceRef addressing this guest."""
        return ResourceRef(vmid=self.vmid, node=self.node, type=self.type, name=self.name)

    @property
    def memory_display(self) -> str:
        """Allocated memory, e.g. ``4.0 GiB``."""
        return format_bytes(self.maxmem)

    @property
    def cpu_display(self) -> str:
        """CPU usage as a percentage of the allocated cores."""
        if self.cpu is None:
            return "-"
        return f"{self.cpu * 100:.0f}%"

    @property
    def uptime_display(self) -> str:
        """Uptime as ``1d 2h 3m``."""
        return format_uptime(self.uptime)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = self.model_dump(exclude_none=True)
        data["type"] = self.type.value
        data["status"] = self.status.value
        return data


def format_uptime(seconds: int | None) -> str:
    """Format seconds as days, hours and minutes."""
    if not seconds:
        return "-"
    days, rest = divmod(int(seconds), 86400)
    hours, rest = divmod(rest, 3600)
    minutes = rest // 60
    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


class Node(BaseModel):
    """A cluster node with its resource usage and guest counts."""

    model_config = ConfigDict(frozen=True)

    name: str
    status: str = "unknown"
    cpu: float | None = None
    maxcpu: int | None = None
    mem: int | None = None
    maxmem: int | None = None
    disk: int | None = None
    maxdisk: int | None = None
    uptime: int | None = None
    guests_vms: int = 0
    guests_cts: int = 0

    @property
    def online(self) -> bool:
        """True if the node reports itself online."""
        return self.status == "online"

    @property
    def status_color(self) -> str:
        """Rich color for the node status."""
        return "green" if self.online else "red"

    @property
    def cpu_display(self) -> str:
        """CPU usage as a percentage."""
        if self.cpu is None:
            return "-"
        return f"{self.cpu * 100:.0f}%"

    @property
    def memory_display(self) -> str:
        """Memory as ``used / total (percent)``."""
        if self.maxmem is None:
            return "-"
        return (
            f"{format_bytes(self.mem)} / {format_bytes(self.maxmem)} "
            f"({_percent(self.mem, self.maxmem)})"
        )

    @property
    def uptime_display(self) -> str:
        """Uptime as ``1d 2h 3m``."""
        return format_uptime(self.uptime)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return self.model_dump(exclude_none=True)
