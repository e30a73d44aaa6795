"""Tests for backup CLI commands."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from pvectl.cli.main import cli
from pvectl.core.exceptions import ResourceNotFoundError
from pvectl.core.orchestration import OperationOptions
from pvectl.models.backup import Backup
from pvectl.models.operation import Operation, OperationResult, ResultState
from pvectl.models.resource import ResourceRef, ResourceType

VOLID = "local:backup/vzdump-qemu-100-2024_01_15-10_30_00.vma.zst"


def flat(output: str) -> str:
    """Collapse whitespace so wrapped table cells still match."""
    return " ".join(output.split())


def make_result(
    vmid: int = 100,
    operation: Operation = Operation.CREATE,
    state: ResultState = ResultState.SUCCEEDED,
    target: str = "local",
    **kwargs,
) -> OperationResult:
    return OperationResult(
        resource=ResourceRef(vmid=vmid, node="pve1"),
        operation=operation,
        state=state,
        target=target,
        **kwargs,
    )


@pytest.fixture
def service_factory() -> Generator[MagicMock, None, None]:
    """Patch Context.backup_service; the mock records the options."""
    with patch("pvectl.cli.context.Context.backup_service") as factory:
        factory.return_value = MagicMock()
        yield factory


@pytest.fixture
def service(service_factory: MagicMock) -> MagicMock:
    return service_factory.return_value


class TestGetBackups:
    """Tests for 'pvectl get backups'."""

    def test_table(
        self, cli_runner: CliRunner, temp_config_file: Path, service: MagicMock
    ) -> None:
        """Test listing backups in table format."""
        service.list.return_value = [
            Backup.from_api({"volid": VOLID, "size": 2048}, node="pve1"),
        ]

        result = cli_runner.invoke(
            cli, ["--config", str(temp_config_file), "get", "backups", "100", "-s", "local"]
        )

        assert result.exit_code == 0
        assert "qemu" in result.output
        assert "2.0 KiB" in flat(result.output)
        service.list.assert_called_once_with([100], node=None, storage="local")

    def test_yaml(
        self, cli_runner: CliRunner, temp_config_file: Path, service: MagicMock
    ) -> None:
        """Test structured output keeps the full volume ID."""
        service.list.return_value = [Backup.from_api({"volid": VOLID}, node="pve1")]

        result = cli_runner.invoke(
            cli, ["--config", str(temp_config_file), "-o", "yaml", "get", "backups"]
        )

        assert result.exit_code == 0
        assert f"volid: {VOLID}" in result.output
        assert "resource_type: qemu" in result.output

    def test_empty(
        self, cli_runner: CliRunner, temp_config_file: Path, service: MagicMock
    ) -> None:
        """Test the message when there are no backups."""
        service.list.return_value = []

        result = cli_runner.invoke(cli, ["--config", str(temp_config_file), "get", "backups"])

        assert result.exit_code == 0
        assert "No backups found" in result.output


class TestCreateBackup:
    """Tests for 'pvectl create backup'."""

    def test_single_vm(
        self, cli_runner: CliRunner, temp_config_file: Path, service: MagicMock
    ) -> None:
        """Test backing up one guest without confirmation."""
        service.create.return_value = [make_result()]

        result = cli_runner.invoke(
            cli,
            [
                "--config", str(temp_config_file),
                "create", "backup", "100", "--storage", "local", "--mode", "stop", "--protected",
            ],
        )

        assert result.exit_code == 0
        assert "Success" in result.output
        service.create.assert_called_once_with(
            [100],
            "local",
            mode="stop",
            compress="zstd",
            notes=None,
            protected=True,
            node=None,
        )

    def test_requires_storage(self, cli_runner: CliRunner, temp_config_file: Path) -> None:
        """Test that --storage is mandatory."""
        result = cli_runner.invoke(
            cli, ["--config", str(temp_config_file), "create", "backup", "100"]
        )
        assert result.exit_code == 2

    def test_requires_vmids(self, cli_runner: CliRunner, temp_config_file: Path) -> None:
        """Test that at least one VMID is required."""
        result = cli_runner.invoke(
            cli, ["--config", str(temp_config_file), "create", "backup", "-s", "local"]
        )
        assert result.exit_code == 2

    def test_invalid_mode(self, cli_runner: CliRunner, temp_config_file: Path) -> None:
        """Test that unknown modes are rejected by the parser."""
        result = cli_runner.invoke(
            cli,
            ["--config", str(temp_config_file), "create", "backup", "100", "-s", "local",
             "--mode", "live"],
        )
        assert result.exit_code == 2

    def test_multiple_vms_confirm_declined(
        self, cli_runner: CliRunner, temp_config_file: Path, service: MagicMock
    ) -> None:
        """Test that declining the prompt backs up nothing."""
        result = cli_runner.invoke(
            cli,
            ["--config", str(temp_config_file), "create", "backup", "100", "101", "-s", "local"],
            input="n\n",
        )

        assert result.exit_code == 1
        assert "Back up VM 100, 101" in flat(result.output)
        service.create.assert_not_called()

    def test_options_passed(
        self, cli_runner: CliRunner, service_factory: MagicMock, temp_config_file: Path
    ) -> None:
        """Test that the shared operation flags reach the service."""
        service_factory.return_value.create.return_value = [
            make_result(state=ResultState.PENDING, task_upid="UPID:pve1:1")
        ]

        result = cli_runner.invoke(
            cli,
            [
                "--config", str(temp_config_file),
                "create", "backup", "100", "-s", "local", "--async", "--timeout", "600",
            ],
        )

        assert result.exit_code == 0
        assert service_factory.call_args.args[0] == OperationOptions(
            timeout=600, async_mode=True, fail_fast=False
        )

    def test_failure_exit_code(
        self, cli_runner: CliRunner, temp_config_file: Path, service: MagicMock
    ) -> None:
        """Test that a failed backup exits non-zero with the API message."""
        service.create.return_value = [
            make_result(state=ResultState.FAILED, error="storage 'local' is full [quota]")
        ]

        result = cli_runner.invoke(
            cli, ["--config", str(temp_config_file), "create", "backup", "100", "-s", "local"]
        )

        assert result.exit_code == 1
        assert "is full [quota]" in flat(result.output)

    def test_unknown_vmid(
        self, cli_runner: CliRunner, temp_config_file: Path, service: MagicMock
    ) -> None:
        """Test that VMIDs matching nothing exit with the not-found code."""
        service.create.return_value = []

        result = cli_runner.invoke(
            cli, ["--config", str(temp_config_file), "create", "backup", "999", "-s", "local"]
        )

        assert result.exit_code == 5


class TestDeleteBackup:
    """Tests for 'pvectl delete backup'."""

    def test_delete(
        self, cli_runner: CliRunner, temp_config_file: Path, service: MagicMock
    ) -> None:
        """Test deleting an archive after confirmation."""
        service.delete.return_value = make_result(operation=Operation.DELETE, target=VOLID)

        result = cli_runner.invoke(
            cli,
            ["--config", str(temp_config_file), "delete", "backup", VOLID],
            input="y\n",
        )

        assert result.exit_code == 0
        service.delete.assert_called_once_with(VOLID, node=None)

    def test_declined(
        self, cli_runner: CliRunner, temp_config_file: Path, service: MagicMock
    ) -> None:
        """Test that declining deletes nothing."""
        result = cli_runner.invoke(
            cli,
            ["--config", str(temp_config_file), "delete", "backup", VOLID],
            input="n\n",
        )

        assert result.exit_code == 1
        service.delete.assert_not_called()

    def test_not_found(
        self, cli_runner: CliRunner, temp_config_file: Path, service: MagicMock
    ) -> None:
        """Test that an unknown archive exits with the not-found code."""
        service.delete.side_effect = ResourceNotFoundError(f"Backup '{VOLID}' not found")

        result = cli_runner.invoke(
            cli, ["--config", str(temp_config_file), "delete", "backup", VOLID, "--yes"]
        )

        assert result.exit_code == 5
        assert "not found" in flat(result.output)


class TestRestoreBackup:
    """Tests for 'pvectl restore backup'."""

    def test_restore(
        self, cli_runner: CliRunner, temp_config_file: Path, service: MagicMock
    ) -> None:
        """Test restoring into a new VMID."""
        service.restore.return_value = OperationResult(
            resource=ResourceRef(vmid=300, node="pve1", type=ResourceType.QEMU),
            operation=Operation.RESTORE,
            state=ResultState.SUCCEEDED,
            target=VOLID,
        )

        result = cli_runner.invoke(
            cli,
            [
                "--config", str(temp_config_file),
                "restore", "backup", VOLID, "--vmid", "300", "--unique", "--start", "-y",
            ],
        )

        assert result.exit_code == 0
        service.restore.assert_called_once_with(
            VOLID, 300, storage=None, force=False, start=True, unique=True, node=None
        )

    def test_requires_vmid(self, cli_runner: CliRunner, temp_config_file: Path) -> None:
        """Test that the target VMID is mandatory."""
        result = cli_runner.invoke(
            cli, ["--config", str(temp_config_file), "restore", "backup", VOLID, "-y"]
        )
        assert result.exit_code == 2

    def test_rejects_zero_vmid(self, cli_runner: CliRunner, temp_config_file: Path) -> None:
        """Test that VMID 0 is a usage error."""
        result = cli_runner.invoke(
            cli,
            ["--config", str(temp_config_file), "restore", "backup", VOLID, "--vmid", "0", "-y"],
        )
        assert result.exit_code == 2

    def test_force_prompt(
        self, cli_runner: CliRunner, temp_config_file: Path, service: MagicMock
    ) -> None:
        """Test that overwriting is spelled out in the prompt."""
        result = cli_runner.invoke(
            cli,
            [
                "--config", str(temp_config_file),
                "restore", "backup", VOLID, "--vmid", "100", "--force",
            ],
            input="n\n",
        )

        assert result.exit_code == 1
        assert "overwriting guest 100" in flat(result.output)
        service.restore.assert_not_called()
