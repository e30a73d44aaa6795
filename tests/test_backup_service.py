"""Tests for BackupService."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from pvectl.core.backup_service import DEFAULT_BACKUP_TIMEOUT, BackupService
from pvectl.core.exceptions import ResourceNotFoundError
from pvectl.core.orchestration import OperationOptions
from pvectl.models.backup import Backup
from pvectl.models.operation import Operation, ResultState
from pvectl.models.resource import ResourceType

UPID = "UPID:pve1:0000A1B2:00C3D4E5:65A1B2C3:vzdump:100:root@pam:"

OLD_VM = "local:backup/vzdump-qemu-100-2024_01_14-10_30_00.vma.zst"
NEW_VM = "local:backup/vzdump-qemu-100-2024_01_15-10_30_00.vma.zst"
SHARED_CT = "nfs:backup/vzdump-lxc-200-2024_01_15-02_00_00.tar.zst"


def backup(volid: str, node: str = "pve1", ctime: int = 0) -> Backup:
    return Backup.from_api({"volid": volid, "ctime": ctime}, node=node)


@pytest.fixture
def backup_repository() -> MagicMock:
    repository = MagicMock()
    repository.create.return_value = UPID
    repository.delete.return_value = UPID
    repository.restore.return_value = UPID
    repository.list.return_value = [
        backup(SHARED_CT, "pve1", 30),
        backup(OLD_VM, "pve1", 10),
        backup(NEW_VM, "pve1", 20),
        backup(SHARED_CT, "pve2", 30),
    ]
    return repository


@pytest.fixture
def make_service(
    backup_repository: MagicMock,
    mock_resolver: MagicMock,
    mock_task_repository: MagicMock,
):
    def factory(**options) -> BackupService:
        return BackupService(
            backup_repository,
            mock_resolver,
            mock_task_repository,
            OperationOptions(**options),
        )

    return factory


class TestOptions:
    """Tests for the backup task timeout."""

    def test_default_timeout(self, make_service) -> None:
        """Test that backups wait longer than other operations by default."""
        assert make_service().options.wait_timeout == DEFAULT_BACKUP_TIMEOUT

    def test_explicit_timeout_kept(self, make_service) -> None:
        """Test that --timeout still applies."""
        service = make_service(timeout=15, fail_fast=True)
        assert service.options.wait_timeout == 15
        assert service.options.fail_fast is True


class TestList:
    """Tests for BackupService.list."""

    def test_list_sorted_and_deduplicated(self, make_service) -> None:
        """Test ordering by VMID, newest first, with shared storage listed once."""
        backups = make_service().list()

        assert [b.volid for b in backups] == [NEW_VM, OLD_VM, SHARED_CT]
        assert backups[2].node == "pve1"

    def test_single_vmid_filters_at_source(
        self, make_service, backup_repository: MagicMock
    ) -> None:
        """Test that one VMID is passed on to the storage listing."""
        make_service().list([200], node="pve2", storage="nfs")

        backup_repository.list.assert_called_once_with(vmid=200, storage="nfs", node="pve2")

    def test_several_vmids(self, make_service, backup_repository: MagicMock) -> None:
        """Test filtering several VMIDs after one listing."""
        backups = make_service().list([200, 999])

        backup_repository.list.assert_called_once_with(vmid=None, storage=None, node=None)
        assert [b.vmid for b in backups] == [200]


class TestCreate:
    """Tests for BackupService.create."""

    def test_create(self, make_service, backup_repository: MagicMock) -> None:
        """Test backing up two guests and waiting for each task."""
        results = make_service().create([100, 200], "local", mode="stop", protected=True)

        assert [r.resource.vmid for r in results] == [100, 200]
        assert all(r.successful for r in results)
        assert results[0].operation == Operation.CREATE
        assert results[0].target == "local"
        args, kwargs = backup_repository.create.call_args
        assert args[0].vmid == 200
        assert args[1] == "local"
        assert kwargs == {
            "mode": "stop",
            "compress": "zstd",
            "notes": None,
            "protected": True,
        }

    def test_create_waits_with_backup_timeout(
        self, make_service, mock_task_repository: MagicMock
    ) -> None:
        """Test that the five minute default reaches the task wait."""
        make_service().create([100], "local")

        mock_task_repository.wait.assert_called_once_with(UPID, timeout=DEFAULT_BACKUP_TIMEOUT)

    def test_create_on_node(self, make_service) -> None:
        """Test that --node filters the targets."""
        results = make_service().create([100, 101], "local", node="pve2")
        assert [r.resource.vmid for r in results] == [101]

    def test_create_async(self, make_service, mock_task_repository: MagicMock) -> None:
        """Test pending results in async mode."""
        results = make_service(async_mode=True).create([100], "local")

        assert results[0].pending is True
        assert results[0].task_upid == UPID
        mock_task_repository.wait.assert_not_called()

    def test_create_fail_fast(self, make_service, backup_repository: MagicMock) -> None:
        """Test stopping after the first failure."""
        backup_repository.create.side_effect = RuntimeError("storage full")

        results = make_service(fail_fast=True).create([100, 101], "local")

        assert len(results) == 1
        assert results[0].error == "storage full"

    @pytest.mark.parametrize(
        ("kwargs", "message"),
        [({"mode": "live"}, "backup mode"), ({"compress": "xz"}, "compression")],
    )
    def test_create_rejects_unknown_settings(
        self, make_service, backup_repository: MagicMock, kwargs: dict, message: str
    ) -> None:
        """Test that mode and compression are validated before any request."""
        with pytest.raises(ValueError, match=message):
            make_service().create([100], "local", **kwargs)
        backup_repository.create.assert_not_called()


class TestDelete:
    """Tests for BackupService.delete."""

    def test_delete(self, make_service, backup_repository: MagicMock) -> None:
        """Test deleting an archive found on its storage."""
        result = make_service().delete(NEW_VM)

        assert result.successful is True
        assert result.operation == Operation.DELETE
        assert result.target == NEW_VM
        assert (result.resource.vmid, result.resource.node) == (100, "pve1")
        backup_repository.list.assert_called_once_with(storage="local", node=None)
        assert backup_repository.delete.call_args.args[0].volid == NEW_VM

    def test_delete_unknown(self, make_service, backup_repository: MagicMock) -> None:
        """Test that an unknown volume ID raises."""
        with pytest.raises(ResourceNotFoundError, match="not found"):
            make_service().delete("local:backup/vzdump-qemu-555-2024_01_01-00_00_00.vma.zst")
        backup_repository.delete.assert_not_called()

    def test_delete_task_failed(
        self, make_service, mock_task_repository: MagicMock, task_factory
    ) -> None:
        """Test that a failed task gives a failed result."""
        mock_task_repository.wait.side_effect = None
        mock_task_repository.wait.return_value = task_factory(
            UPID, exitstatus="volume is protected"
        )

        result = make_service().delete(NEW_VM)

        assert result.failed is True
        assert result.message == "volume is protected"


class TestRestore:
    """Tests for BackupService.restore."""

    def test_restore_container(self, make_service, backup_repository: MagicMock) -> None:
        """Test restoring into a new VMID on the archive's node."""
        result = make_service().restore(SHARED_CT, 300, start=True, unique=True, node="pve2")

        assert result.successful is True
        assert result.operation == Operation.RESTORE
        assert result.resource.vmid == 300
        assert result.resource.type == ResourceType.LXC
        assert result.target == SHARED_CT
        backup_repository.list.assert_called_once_with(storage="nfs", node="pve2")
        args, kwargs = backup_repository.restore.call_args
        assert args[1] == 300
        assert kwargs == {"storage": None, "force": False, "start": True, "unique": True}

    def test_restore_api_error(self, make_service, backup_repository: MagicMock) -> None:
        """Test that a rejected restore is a failed result."""
        backup_repository.restore.side_effect = RuntimeError("VM 100 already exists")

        result = make_service().restore(NEW_VM, 100)

        assert result.outcome == ResultState.FAILED
        assert "already exists" in result.message

    @pytest.mark.parametrize("vmid", [0, -1])
    def test_restore_invalid_vmid(
        self, make_service, backup_repository: MagicMock, vmid: int
    ) -> None:
        """Test that a non-positive VMID is rejected before any request."""
        with pytest.raises(ValueError, match="positive integer"):
            make_service().restore(NEW_VM, vmid)
        backup_repository.list.assert_not_called()

    def test_restore_unknown(self, make_service) -> None:
        """Test that an unknown archive raises."""
        with pytest.raises(ResourceNotFoundError):
            make_service().restore("pbs:backup/vm/100/2024-01-15T10:30:00Z", 100)
