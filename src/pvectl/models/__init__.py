"""Data models for pvectl."""

from pvectl.models.config import (
    AuthType,
    Cluster,
    Context,
    ResolvedConfig,
    User,
)
from pvectl.models.operation import Operation, OperationResult, ResultState
from pvectl.models.resource import ResourceRef, ResourceType
from pvectl.models.snapshot import Snapshot, SnapshotDescription, SnapshotEntry
from pvectl.models.task import Task

__all__ = [
    "AuthType",
    "Cluster",
    "Context",
    "Operation",
    "OperationResult",
    "ResolvedConfig",
    "ResourceRef",
    "ResourceType",
    "ResultState",
    "Snapshot",
    "SnapshotDescription",
    "SnapshotEntry",
    "Task",
    "User",
]
