"""Resolution of VMIDs to the nodes that host them.

Guest API paths need the node name, while users address guests by
VMID alone. The resolver reads the cluster inventory once and answers
lookups from that snapshot.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from pvectl.models.resource import ResourceRef, ResourceType
from pvectl.utils.logging import get_logger

if TYPE_CHECKING:
    from pvectl.core.connection import Connection

logger = get_logger("resolver")


class ResourceResolver:
    """Maps VMIDs to ResourceRefs using ``cluster/resources``.

    The inventory is fetched on first use and cached for the lifetime
    of the resolver.

    Args:
        connection: API connection.

    Example:
        >>> resolver = ResourceResolver(connection)
        >>> resolver.resolve(100)
        ResourceRef(vmid=100, node='pve1', type=<ResourceType.QEMU: 'qemu'>, name='web-1')
    """

    def __init__(self, connection: Connection) -> None:
        self.connection = connection
        self._cache: dict[int, ResourceRef] | None = None

    def _load(self) -> dict[int, ResourceRef]:
        if self._cache is None:
            entries = self.connection.get("cluster/resources", params={"type": "vm"}) or []
            cache: dict[int, ResourceRef] = {}
            for entry in entries:
                if entry.get("vmid") is None:
                    continue
                ref = ResourceRef(
                    vmid=int(entry["vmid"]),
                    node=entry.get("node"),
                    type=ResourceType.from_api(entry.get("type")),
                    name=entry.get("name"),
                )
                cache[ref.vmid] = ref
            logger.debug(f"Loaded {len(cache)} guests from cluster inventory")
            self._cache = cache
        return self._cache

    def resolve(self, vmid: int | str) -> ResourceRef | None:
        """Resolve one VMID, or None if it is not in the cluster."""
        return self._load().get(int(vmid))

    def resolve_multiple(self, vmids: Iterable[int | str]) -> list[ResourceRef]:
        """Resolve VMIDs in request order, skipping unknown ones."""
        cache = self._load()
        resolved = []
        for vmid in vmids:
            ref = cache.get(int(vmid))
            if ref is None:
                logger.info(f"VMID {vmid} not found in cluster")
                continue
            resolved.append(ref)
        return resolved

    def resolve_all(self) -> list[ResourceRef]:
        """Every guest in the cluster, in inventory order."""
        return list(self._load().values())
