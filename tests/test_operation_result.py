"""Tests for OperationResult."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from pvectl.models.operation import Operation, OperationResult, ResultState, any_failed
from pvectl.models.resource import ResourceRef
from pvectl.models.task import Task

UPID = "UPID:pve1:0000A1B2:00C3D4E5:65A1B2C3:qmstart:100:root@pam:"


@pytest.fixture
def resource() -> ResourceRef:
    return ResourceRef(vmid=100, node="pve1", name="web-1")


class TestOperationResultState:
    """Tests for pending/success/failure derivation."""

    def test_explicit_pending(self, resource: ResourceRef) -> None:
        """Test an asynchronously dispatched result."""
        result = OperationResult(
            resource=resource,
            operation=Operation.SHUTDOWN,
            task_upid=UPID,
            state=ResultState.PENDING,
        )
        assert result.pending is True
        assert result.successful is False
        assert result.failed is False
        assert result.outcome == ResultState.PENDING
        assert result.status_text == "Pending"

    def test_running_task_overrides_state(
        self, resource: ResourceRef, task_factory: Callable[..., Task]
    ) -> None:
        """Test that a running task is pending whatever the state says."""
        result = OperationResult(
            resource=resource,
            operation=Operation.START,
            task=task_factory(UPID, status="running", exitstatus=None),
            state=ResultState.SUCCEEDED,
        )
        assert result.pending is True
        assert result.successful is False

    def test_success_from_task(
        self, resource: ResourceRef, task_factory: Callable[..., Task]
    ) -> None:
        """Test deriving success from the task when no state is set."""
        result = OperationResult(
            resource=resource, operation=Operation.START, task=task_factory(UPID)
        )
        assert result.successful is True
        assert result.status_text == "Success"

    def test_failure_from_task(
        self, resource: ResourceRef, task_factory: Callable[..., Task]
    ) -> None:
        """Test deriving failure from the task's exit status."""
        result = OperationResult(
            resource=resource,
            operation=Operation.START,
            task=task_factory(UPID, exitstatus="VM is locked (backup)"),
        )
        assert result.failed is True
        assert result.status_text == "Failed"
        assert result.message == "VM is locked (backup)"

    def test_explicit_failure(self, resource: ResourceRef) -> None:
        """Test an explicitly failed result."""
        result = OperationResult(
            resource=resource,
            operation=Operation.DELETE,
            state=ResultState.FAILED,
            error="HTTP 500: Internal Server Error",
        )
        assert result.failed is True
        assert result.outcome.color == "red"


class TestOperationResultOutput:
    """Tests for messages and serialization."""

    def test_message_precedence(self, resource: ResourceRef) -> None:
        """Test that error wins over detail, which wins over the UPID."""
        base = {"resource": resource, "operation": Operation.DELETE}
        assert (
            OperationResult(**base, error="boom", detail="info", task_upid=UPID).message
            == "boom"
        )
        assert OperationResult(**base, detail="info", task_upid=UPID).message == "info"
        assert OperationResult(**base, task_upid=UPID).message == f"Task: {UPID}"
        assert OperationResult(**base, state=ResultState.SUCCEEDED).message == "Success"

    def test_to_dict(self, resource: ResourceRef) -> None:
        """Test the serialized form."""
        result = OperationResult(
            resource=resource,
            operation=Operation.CREATE,
            task_upid=UPID,
            state=ResultState.PENDING,
            target="before-upgrade",
        )
        assert result.to_dict() == {
            "vmid": 100,
            "node": "pve1",
            "type": "qemu",
            "operation": "create",
            "status": "pending",
            "message": f"Task: {UPID}",
            "name": "web-1",
            "target": "before-upgrade",
            "upid": UPID,
        }

    def test_to_dict_error(self) -> None:
        """Test serializing a failed result without a node."""
        result = OperationResult(
            resource=ResourceRef(vmid=999),
            operation=Operation.ROLLBACK,
            state=ResultState.FAILED,
            error="Resource 999 not found",
        )
        data = result.to_dict()
        assert data["status"] == "failed"
        assert data["error"] == "Resource 999 not found"
        assert data["node"] is None
        assert "upid" not in data

    def test_any_failed(self, resource: ResourceRef) -> None:
        """Test detecting a failure among results."""
        ok = OperationResult(
            resource=resource, operation=Operation.START, state=ResultState.SUCCEEDED
        )
        pending = OperationResult(
            resource=resource, operation=Operation.START, state=ResultState.PENDING
        )
        failed = OperationResult(
            resource=resource, operation=Operation.START, state=ResultState.FAILED
        )
        assert any_failed([ok, pending]) is False
        assert any_failed([ok, failed]) is True
        assert any_failed([]) is False
