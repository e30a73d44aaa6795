"""Per-resource operation results for pvectl.

Every multi-resource command produces one OperationResult per resource
(or per sub-resource for bulk deletes). A result is pending, succeeded
or failed; a still-running task always makes it pending.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from pvectl.models.resource import ResourceRef
from pvectl.models.task import Task


class Operation(str, Enum):
    """Verbs an orchestration service can perform."""

    CREATE = "create"
    DELETE = "delete"
    ROLLBACK = "rollback"
    RESTORE = "restore"
    START = "start"
    STOP = "stop"
    SHUTDOWN = "shutdown"
    REBOOT = "reboot"
    RESET = "reset"
    SUSPEND = "suspend"
    RESUME = "resume"


class ResultState(str, Enum):
    """Outcome of a single operation."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PENDING = "pending"

    @property
    def color(self) -> str:
        """Rich color for displaying this state."""
        colors = {
            ResultState.SUCCEEDED: "green",
            ResultState.FAILED: "red",
            ResultState.PENDING: "yellow",
        }
        return colors[self]


class OperationResult(BaseModel):
    """Result of one operation on one resource.

    The state comes from ``state`` when set explicitly, otherwise from
    the attached task. A task that is still running makes the result
    pending regardless of ``state``.

    Args:
        resource: The resource the operation targeted.
        operation: The verb performed.
        task: Final task status when waited on synchronously.
        task_upid: Task identifier when dispatched asynchronously.
        state: Explicit outcome.
        error: Error message for failed operations.
        target: Sub-resource name (e.g. a snapshot name).
        detail: Informational message for no-op results.

    Example:
        >>> result = OperationResult(
        ...     resource=ResourceRef(vmid=100, node="pve1"),
        ...     operation=Operation.START,
        ...     task_upid="UPID:pve1:...",
        ...     state=ResultState.PENDING,
        ... )
        >>> result.status_text
        'Pending'
    """

    model_config = ConfigDict(frozen=True)

    resource: ResourceRef
    operation: Operation
    task: Task | None = None
    task_upid: str | None = None
    state: ResultState | None = None
    error: str | None = None
    target: str | None = None
    detail: str | None = None

    @property
    def pending(self) -> bool:
        """True if dispatched asynchronously or the task is still running."""
        if self.task is not None and self.task.pending:
            return True
        return self.state == ResultState.PENDING

    @property
    def successful(self) -> bool:
        """True if the operation completed successfully."""
        if self.pending:
            return False
        if self.state is not None:
            return self.state == ResultState.SUCCEEDED
        return self.task is not None and self.task.successful

    @property
    def failed(self) -> bool:
        """True if the operation completed with an error."""
        if self.pending:
            return False
        if self.state is not None:
            return self.state == ResultState.FAILED
        return self.task is not None and self.task.failed

    @property
    def outcome(self) -> ResultState:
        """The effective state after considering the task."""
        if self.pending:
            return ResultState.PENDING
        if self.successful:
            return ResultState.SUCCEEDED
        return ResultState.FAILED

    @property
    def status_text(self) -> str:
        """Short status label for display."""
        return {
            ResultState.PENDING: "Pending",
            ResultState.SUCCEEDED: "Success",
            ResultState.FAILED: "Failed",
        }[self.outcome]

    @property
    def message(self) -> str:
        """Most informative message available for this result."""
        if self.error:
            return self.error
        if self.detail:
            return self.detail
        if self.task is not None and self.task.exitstatus:
            return self.task.exitstatus
        if self.task_upid:
            return f"Task: {self.task_upid}"
        return self.status_text

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: dict[str, Any] = {
            "vmid": self.resource.vmid,
            "node": self.resource.node,
            "type": self.resource.type.value,
            "operation": self.operation.value,
            "status": self.outcome.value,
            "message": self.message,
        }
        if self.resource.name:
            data["name"] = self.resource.name
        if self.target:
            data["target"] = self.target
        upid = self.task.upid if self.task is not None else self.task_upid
        if upid:
            data["upid"] = upid
        if self.error:
            data["error"] = self.error
        return data


def any_failed(results: list[OperationResult]) -> bool:
    """True if at least one result failed."""
    return any(r.failed for r in results)
