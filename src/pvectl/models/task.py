"""Task models for pvectl.

Long-running Proxmox operations return a UPID; its status is read back
as a Task snapshot on every poll.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

TASK_RUNNING = "running"
TASK_OK = "OK"


def node_from_upid(upid: str) -> str:
    """Extract the node name from a UPID.

    A UPID looks like ``UPID:pve1:000A1B2C:...``; the node is the second
    colon-separated field.

    Raises:
        ValueError: If the string is not a UPID.
    """
    parts = upid.split(":")
    if len(parts) < 3 or parts[0] != "UPID" or not parts[1]:
        raise ValueError(f"Invalid UPID: {upid!r}")
    return parts[1]


class Task(BaseModel):
    """Status of an asynchronous Proxmox operation at poll time.

    Args:
        upid: Unique process ID of the task.
        node: Node running the task.
        type: Task type (qmstart, qmsnapshot, ...).
        status: ``running`` or ``stopped``.
        exitstatus: ``OK`` or an error text once stopped.
        starttime: Start time as a Unix timestamp.
        endtime: End time as a Unix timestamp.
        user: User who started the task.

    Example:
        >>> task = Task(upid="UPID:pve1:...", status="stopped", exitstatus="OK")
        >>> task.successful
        True
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    upid: str
    node: str | None = None
    type: str | None = None
    status: str | None = None
    exitstatus: str | None = None
    starttime: int | None = None
    endtime: int | None = None
    user: str | None = None

    @property
    def pending(self) -> bool:
        """True while the task is still running."""
        return self.status == TASK_RUNNING

    @property
    def completed(self) -> bool:
        """True once the task has left the running state."""
        return not self.pending

    @property
    def successful(self) -> bool:
        """True if the task finished with exit status OK."""
        return self.completed and self.exitstatus == TASK_OK

    @property
    def failed(self) -> bool:
        """True if the task finished with any other exit status."""
        return self.completed and self.exitstatus != TASK_OK

    @property
    def duration(self) -> int | None:
        """Runtime in seconds, if both timestamps are known."""
        if self.starttime is None or self.endtime is None:
            return None
        return self.endtime - self.starttime
