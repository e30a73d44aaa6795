"""Tests for VMID resolution."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from pvectl.core.resolver import ResourceResolver
from pvectl.models.resource import ResourceType

INVENTORY = [
    {"vmid": 100, "node": "pve1", "type": "qemu", "name": "web-1", "status": "running"},
    {"vmid": 200, "node": "pve2", "type": "lxc", "name": "proxy", "status": "stopped"},
    {"vmid": 101, "node": "pve2", "type": "qemu", "name": "db-1", "status": "running"},
    {"id": "storage/pve1/local", "type": "storage"},
]


@pytest.fixture
def resolver(mock_connection: MagicMock) -> ResourceResolver:
    mock_connection.get.return_value = INVENTORY
    return ResourceResolver(mock_connection)


class TestResourceResolver:
    """Tests for ResourceResolver."""

    def test_resolve(self, resolver: ResourceResolver, mock_connection: MagicMock) -> None:
        """Test resolving a single VMID."""
        ref = resolver.resolve(200)

        assert ref is not None
        assert ref.node == "pve2"
        assert ref.type == ResourceType.LXC
        assert ref.name == "proxy"
        mock_connection.get.assert_called_once_with("cluster/resources", params={"type": "vm"})

    def test_resolve_string_vmid(self, resolver: ResourceResolver) -> None:
        """Test that string VMIDs are accepted."""
        ref = resolver.resolve("100")
        assert ref is not None
        assert ref.vmid == 100

    def test_resolve_unknown(self, resolver: ResourceResolver) -> None:
        """Test that unknown VMIDs resolve to None."""
        assert resolver.resolve(999) is None

    def test_resolve_multiple_keeps_order(self, resolver: ResourceResolver) -> None:
        """Test request order is kept and unknown VMIDs are skipped."""
        refs = resolver.resolve_multiple([101, 999, 100])
        assert [r.vmid for r in refs] == [101, 100]

    def test_resolve_all(self, resolver: ResourceResolver) -> None:
        """Test listing every guest, ignoring entries without a VMID."""
        assert [r.vmid for r in resolver.resolve_all()] == [100, 200, 101]

    def test_inventory_cached(
        self, resolver: ResourceResolver, mock_connection: MagicMock
    ) -> None:
        """Test that the inventory is fetched once."""
        resolver.resolve(100)
        resolver.resolve_multiple([101])
        resolver.resolve_all()
        assert mock_connection.get.call_count == 1

    def test_empty_cluster(self, mock_connection: MagicMock) -> None:
        """Test a cluster without guests."""
        mock_connection.get.return_value = None
        assert ResourceResolver(mock_connection).resolve_all() == []
