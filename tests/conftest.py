"""Pytest configuration and fixtures for pvectl tests.

This module provides shared fixtures for testing pvectl components
including sample configurations, mocked API connections and a mocked
cluster inventory.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import pytest
import yaml

from pvectl.core.config import ConfigProvider
from pvectl.core.connection import Connection
from pvectl.models.config import AuthType, ResolvedConfig
from pvectl.models.resource import ResourceRef, ResourceType
from pvectl.models.task import Task

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

    from click.testing import CliRunner

UPID_PVE1 = "UPID:pve1:0000A1B2:00C3D4E5:65A1B2C3:qmsnapshot:100:root@pam:"

ENV_VARS = (*ConfigProvider.ENV_VARS, "PVECTL_DEBUG")


def make_task(
    upid: str = UPID_PVE1,
    status: str = "stopped",
    exitstatus: str | None = "OK",
) -> Task:
    """Build a Task as returned by a finished (or running) poll."""
    return Task(upid=upid, node=upid.split(":")[1], status=status, exitstatus=exitstatus)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the caller's PROXMOX_* and PVECTL_* variables out of tests."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Drop handlers bound to streams of earlier CLI invocations."""
    yield
    logging.getLogger("pvectl").handlers.clear()
    logging.getLogger("urllib3").handlers.clear()


@pytest.fixture
def temp_config_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for config files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config_data() -> dict[str, Any]:
    """Configuration with a production and a development context."""
    return {
        "apiVersion": "pvectl/v1",
        "kind": "Config",
        "clusters": [
            {
                "name": "pve-prod",
                "cluster": {"server": "https://pve1.example.com:8006"},
            },
            {
                "name": "pve-dev",
                "cluster": {
                    "server": "https://10.0.0.5:8006",
                    "insecure-skip-tls-verify": True,
                    "timeout": 60,
                    "retry-count": 5,
                },
            },
        ],
        "users": [
            {
                "name": "admin",
                "user": {
                    "token-id": "root@pam!pvectl",
                    "token-secret": "11111111-2222-3333-4444-555555555555",
                },
            },
            {
                "name": "dev-user",
                "user": {"username": "dev@pve", "password": "s3cret"},
            },
        ],
        "contexts": [
            {"name": "prod", "context": {"cluster": "pve-prod", "user": "admin"}},
            {
                "name": "dev",
                "context": {
                    "cluster": "pve-dev",
                    "user": "dev-user",
                    "default-node": "pve-dev1",
                },
            },
        ],
        "current-context": "prod",
    }


def write_config(path: Path, data: dict[str, Any]) -> Path:
    """Write ``data`` as YAML with owner-only permissions."""
    with path.open("w") as f:
        yaml.safe_dump(data, f)
    path.chmod(0o600)
    return path


@pytest.fixture
def config_writer() -> Callable[[Path, dict[str, Any]], Path]:
    """Writer for ad-hoc config files (see ``write_config``)."""
    return write_config


@pytest.fixture
def temp_config_file(
    temp_config_dir: Path, sample_config_data: dict[str, Any]
) -> Generator[Path, None, None]:
    """Create a temporary config file with sample data."""
    yield write_config(temp_config_dir / "config", sample_config_data)


@pytest.fixture
def token_config() -> ResolvedConfig:
    """Resolved settings for API token authentication."""
    return ResolvedConfig(
        context_name="prod",
        server="https://pve1.example.com:8006",
        auth_type=AuthType.TOKEN,
        token_id="root@pam!pvectl",
        token_secret="secret",
        retry_count=2,
        retry_delay=1,
        max_retry_delay=10,
    )


@pytest.fixture
def password_config() -> ResolvedConfig:
    """Resolved settings for ticket authentication."""
    return ResolvedConfig(
        context_name="dev",
        server="https://10.0.0.5:8006/",
        auth_type=AuthType.PASSWORD,
        username="dev",
        password="s3cret",
        verify_ssl=False,
    )


@pytest.fixture
def mock_connection() -> MagicMock:
    """Create a mocked API connection."""
    return MagicMock(spec=Connection)


@pytest.fixture
def sample_resources() -> list[ResourceRef]:
    """Two VMs on different nodes and a container on pve1."""
    return [
        ResourceRef(vmid=100, node="pve1", type=ResourceType.QEMU, name="web-1"),
        ResourceRef(vmid=101, node="pve2", type=ResourceType.QEMU, name="db-1"),
        ResourceRef(vmid=200, node="pve1", type=ResourceType.LXC, name="proxy"),
    ]


@pytest.fixture
def mock_resolver(sample_resources: list[ResourceRef]) -> MagicMock:
    """Resolver answering from ``sample_resources``."""
    by_vmid = {r.vmid: r for r in sample_resources}
    resolver = MagicMock()
    resolver.resolve.side_effect = lambda vmid: by_vmid.get(int(vmid))
    resolver.resolve_multiple.side_effect = lambda vmids: [
        by_vmid[v] for v in vmids if v in by_vmid
    ]
    resolver.resolve_all.return_value = list(sample_resources)
    return resolver


@pytest.fixture
def task_factory() -> Callable[..., Task]:
    """Factory for Task objects (see ``make_task``)."""
    return make_task


@pytest.fixture
def mock_task_repository() -> MagicMock:
    """Task repository whose tasks always finish with OK."""
    repository = MagicMock()
    repository.wait.side_effect = lambda upid, timeout=None: make_task(upid)
    return repository


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click test runner with a fixed, wide terminal width."""
    from click.testing import CliRunner

    return CliRunner(env={"COLUMNS": "200"})
