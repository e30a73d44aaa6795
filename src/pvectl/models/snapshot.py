"""Snapshot models for pvectl."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from pvectl.models.resource import ResourceType

# Pseudo-entry the API returns for the live state of a guest
CURRENT_SNAPSHOT = "current"


class Snapshot(BaseModel):
    """A point-in-time snapshot of a VM or container.

    Args:
        name: Snapshot name.
        snaptime: Creation time as a Unix timestamp.
        description: Free-form description.
        vmstate: 1 if the RAM state was saved (QEMU only).
        parent: Name of the parent snapshot.
        vmid: Owning guest's VMID.
        node: Node the owning guest lives on.
        resource_type: Owning guest's kind.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    snaptime: int | None = None
    description: str | None = None
    vmstate: int | None = None
    parent: str | None = None
    vmid: int | None = None
    node: str | None = None
    resource_type: ResourceType = ResourceType.QEMU

    @property
    def has_vmstate(self) -> bool:
        """True if RAM state is included."""
        return self.vmstate == 1

    @property
    def created_at(self) -> datetime | None:
        """Creation time as an aware datetime, if known."""
        if self.snaptime is None:
            return None
        return datetime.fromtimestamp(self.snaptime, tz=timezone.utc)

    @property
    def created_display(self) -> str:
        """Creation time formatted for tables."""
        created = self.created_at
        return created.strftime("%Y-%m-%d %H:%M:%S") if created else "-"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        data = self.model_dump(exclude_none=True)
        data["resource_type"] = self.resource_type.value
        return data


class SnapshotEntry(BaseModel):
    """One guest's copy of a described snapshot, with its siblings."""

    model_config = ConfigDict(frozen=True)

    snapshot: Snapshot
    siblings: list[Snapshot] = Field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "snapshot": self.snapshot.to_dict(),
            "siblings": [s.name for s in self.siblings],
        }


class SnapshotDescription(BaseModel):
    """Result of describing a snapshot by name across guests."""

    model_config = ConfigDict(frozen=True)

    entries: list[SnapshotEntry] = Field(default_factory=list)

    @property
    def single(self) -> bool:
        """True if exactly one guest has the snapshot."""
        return len(self.entries) == 1

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {"entries": [e.to_dict() for e in self.entries]}
