"""Tests for SnapshotService."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from pvectl.core.exceptions import ApiError, ResourceNotFoundError
from pvectl.core.orchestration import OperationOptions
from pvectl.core.snapshot_service import SnapshotService
from pvectl.models.operation import Operation, ResultState
from pvectl.models.resource import ResourceRef
from pvectl.models.snapshot import Snapshot

UPID = "UPID:pve1:0000A1B2:00C3D4E5:65A1B2C3:qmsnapshot:100:root@pam:"


def snapshots_for(resource: ResourceRef, *names: str) -> list[Snapshot]:
    return [
        Snapshot(name=n, vmid=resource.vmid, node=resource.node, resource_type=resource.type)
        for n in names
    ]


@pytest.fixture
def snapshot_repository() -> MagicMock:
    repository = MagicMock()
    repository.create.return_value = UPID
    repository.delete.return_value = UPID
    repository.rollback.return_value = UPID
    repository.list.return_value = []
    return repository


@pytest.fixture
def make_service(
    snapshot_repository: MagicMock,
    mock_resolver: MagicMock,
    mock_task_repository: MagicMock,
):
    def factory(**options) -> SnapshotService:
        return SnapshotService(
            snapshot_repository,
            mock_resolver,
            mock_task_repository,
            OperationOptions(**options),
        )

    return factory


class TestList:
    """Tests for SnapshotService.list."""

    def test_list_requested_guests(self, make_service, snapshot_repository: MagicMock) -> None:
        """Test listing snapshots of specific guests."""
        snapshot_repository.list.side_effect = lambda r: snapshots_for(r, "s1", "s2")

        snapshots = make_service().list([100, 101])

        assert [(s.vmid, s.name) for s in snapshots] == [
            (100, "s1"),
            (100, "s2"),
            (101, "s1"),
            (101, "s2"),
        ]

    def test_list_node_filter(self, make_service, snapshot_repository: MagicMock) -> None:
        """Test listing only guests on one node."""
        snapshot_repository.list.side_effect = lambda r: snapshots_for(r, "s1")

        snapshots = make_service().list([], node="pve1")

        assert sorted(s.vmid for s in snapshots) == [100, 200]

    def test_list_skips_unreadable_guest(
        self, make_service, snapshot_repository: MagicMock
    ) -> None:
        """Test that one guest's API error does not abort the listing."""

        def list_snapshots(resource: ResourceRef) -> list[Snapshot]:
            if resource.vmid == 101:
                raise ApiError("HTTP 500: Internal Server Error", status_code=500)
            return snapshots_for(resource, "s1")

        snapshot_repository.list.side_effect = list_snapshots

        snapshots = make_service().list([])

        assert [s.vmid for s in snapshots] == [100, 200]


class TestDescribe:
    """Tests for SnapshotService.describe."""

    def test_describe_found(self, make_service, snapshot_repository: MagicMock) -> None:
        """Test describing a snapshot present on some guests."""
        snapshot_repository.list.side_effect = lambda r: (
            snapshots_for(r, "base", "before-upgrade") if r.vmid == 100 else snapshots_for(r, "x")
        )

        description = make_service().describe([], "before-upgrade")

        assert description.single is True
        entry = description.entries[0]
        assert entry.snapshot.vmid == 100
        assert [s.name for s in entry.siblings] == ["base", "before-upgrade"]

    def test_describe_unknown_vmid(self, make_service) -> None:
        """Test describing on a VMID that does not exist."""
        with pytest.raises(ResourceNotFoundError, match="Resource 999 not found"):
            make_service().describe([999], "s1")

    def test_describe_empty_cluster(self, make_service, mock_resolver: MagicMock) -> None:
        """Test describing with no guests in the cluster."""
        mock_resolver.resolve_all.return_value = []
        with pytest.raises(ResourceNotFoundError, match="No resources found"):
            make_service().describe([], "s1")

    def test_describe_missing_snapshot(self, make_service) -> None:
        """Test a snapshot that no guest has."""
        with pytest.raises(ResourceNotFoundError, match="Snapshot 's1' not found on VM 100, 101"):
            make_service().describe([100, 101], "s1")


class TestCreate:
    """Tests for SnapshotService.create."""

    def test_create_on_cluster(
        self, make_service, snapshot_repository: MagicMock, mock_resolver: MagicMock
    ) -> None:
        """Test that empty VMIDs with a single-guest cluster gives one result."""
        only = ResourceRef(vmid=300, node="pve3")
        mock_resolver.resolve_all.return_value = [only]

        results = make_service().create([], "snap1")

        assert len(results) == 1
        assert results[0].operation == Operation.CREATE
        assert results[0].resource == only
        assert results[0].target == "snap1"
        snapshot_repository.create.assert_called_once_with(
            only, "snap1", description=None, vmstate=False
        )

    def test_create_options_passed(self, make_service, snapshot_repository: MagicMock) -> None:
        """Test description and vmstate reaching the repository."""
        make_service().create([100], "s1", description="pre-upgrade", vmstate=True)

        args, kwargs = snapshot_repository.create.call_args
        assert args[0].vmid == 100
        assert kwargs == {"description": "pre-upgrade", "vmstate": True}

    def test_create_async(self, make_service, mock_task_repository: MagicMock) -> None:
        """Test async creation returning pending results."""
        results = make_service(async_mode=True).create([100, 101], "s1")

        assert all(r.pending for r in results)
        assert all(r.task_upid == UPID for r in results)
        mock_task_repository.wait.assert_not_called()


class TestDelete:
    """Tests for SnapshotService.delete."""

    def test_delete_node_filter(self, make_service, snapshot_repository: MagicMock) -> None:
        """Test that guests on other nodes are not touched."""
        results = make_service().delete([100, 101], "snap1", node="pve1")

        assert len(results) == 1
        assert results[0].resource.vmid == 100
        snapshot_repository.delete.assert_called_once()

    def test_delete_force(self, make_service, snapshot_repository: MagicMock) -> None:
        """Test force reaching the repository."""
        make_service().delete([100], "snap1", force=True)

        args, kwargs = snapshot_repository.delete.call_args
        assert args[1] == "snap1"
        assert kwargs == {"force": True}

    def test_delete_cluster_wide_only_where_present(
        self, make_service, snapshot_repository: MagicMock
    ) -> None:
        """Test that without VMIDs only guests having the snapshot are processed."""
        snapshot_repository.list.side_effect = lambda r: (
            snapshots_for(r, "snap1") if r.vmid in (100, 200) else []
        )

        results = make_service().delete([], "snap1")

        assert [r.resource.vmid for r in results] == [100, 200]

    def test_delete_explicit_vmids_not_prechecked(
        self, make_service, snapshot_repository: MagicMock
    ) -> None:
        """Test that requested guests are attempted even without the snapshot."""
        results = make_service().delete([101], "snap1")

        assert len(results) == 1
        snapshot_repository.list.assert_not_called()


class TestDeleteAll:
    """Tests for SnapshotService.delete_all."""

    def test_one_result_per_snapshot(self, make_service, snapshot_repository: MagicMock) -> None:
        """Test deleting every snapshot of each guest."""
        snapshot_repository.list.side_effect = lambda r: (
            snapshots_for(r, "a", "b") if r.vmid == 100 else snapshots_for(r, "c")
        )

        results = make_service().delete_all([100, 101])

        assert [(r.resource.vmid, r.target) for r in results] == [
            (100, "a"),
            (100, "b"),
            (101, "c"),
        ]
        assert all(r.successful for r in results)

    def test_guest_without_snapshots(self, make_service) -> None:
        """Test the no-op result for a guest without snapshots."""
        results = make_service().delete_all([100])

        assert len(results) == 1
        assert results[0].state == ResultState.SUCCEEDED
        assert results[0].message == "No snapshots to delete"

    def test_listing_failure(self, make_service, snapshot_repository: MagicMock) -> None:
        """Test that an unreadable guest yields a failed result and processing continues."""

        def list_snapshots(resource: ResourceRef) -> list[Snapshot]:
            if resource.vmid == 100:
                raise ApiError("HTTP 500: Internal Server Error", status_code=500)
            return snapshots_for(resource, "s1")

        snapshot_repository.list.side_effect = list_snapshots

        results = make_service().delete_all([100, 101])

        assert results[0].failed is True
        assert "HTTP 500" in results[0].message
        assert results[1].successful is True

    def test_fail_fast_stops_all_guests(
        self, make_service, snapshot_repository: MagicMock
    ) -> None:
        """Test that a failure stops remaining snapshots and guests."""
        snapshot_repository.list.side_effect = lambda r: snapshots_for(r, "a", "b", "c")
        snapshot_repository.delete.side_effect = [UPID, ApiError("snapshot is locked"), UPID]

        results = make_service(fail_fast=True).delete_all([100, 101])

        assert [(r.resource.vmid, r.target) for r in results] == [(100, "a"), (100, "b")]
        assert results[-1].failed is True

    def test_without_fail_fast_continues(
        self, make_service, snapshot_repository: MagicMock
    ) -> None:
        """Test that failures do not stop processing by default."""
        snapshot_repository.list.side_effect = lambda r: snapshots_for(r, "a", "b")
        snapshot_repository.delete.side_effect = [ApiError("locked"), UPID, UPID, UPID]

        results = make_service().delete_all([100, 101])

        assert len(results) == 4
        assert [r.failed for r in results] == [True, False, False, False]


class TestRollback:
    """Tests for SnapshotService.rollback."""

    def test_rollback(self, make_service, snapshot_repository: MagicMock) -> None:
        """Test rolling back a resolved guest."""
        result = make_service().rollback(200, "s1", start=True)

        assert result.successful is True
        assert result.operation == Operation.ROLLBACK
        assert result.target == "s1"
        args, kwargs = snapshot_repository.rollback.call_args
        assert args[0].vmid == 200
        assert kwargs == {"start": True}

    def test_rollback_unknown_vmid(self, make_service, snapshot_repository: MagicMock) -> None:
        """Test that an unknown guest gives a failed result."""
        result = make_service().rollback(999, "s1")

        assert result.failed is True
        assert result.error == "Resource 999 not found"
        snapshot_repository.rollback.assert_not_called()

    @pytest.mark.parametrize("vmid", [0, -5])
    def test_rollback_invalid_vmid(
        self,
        make_service,
        snapshot_repository: MagicMock,
        mock_resolver: MagicMock,
        vmid: int,
    ) -> None:
        """Test that a non-positive VMID is rejected before resolving."""
        with pytest.raises(ValueError, match="positive integer"):
            make_service().rollback(vmid, "s1")

        mock_resolver.resolve.assert_not_called()
        snapshot_repository.rollback.assert_not_called()
