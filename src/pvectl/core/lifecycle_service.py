"""Power state operations (start, stop, shutdown, ...) across guests."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from pvectl.core.orchestration import MultiResourceService, OperationOptions
from pvectl.models.operation import Operation, OperationResult
from pvectl.models.resource import ResourceType

if TYPE_CHECKING:
    from pvectl.core.repositories import GuestRepository, TaskRepository
    from pvectl.core.resolver import ResourceResolver


class LifecycleService(MultiResourceService):
    """Runs power actions on VMs and containers.

    ``start``, ``stop``, ``reset`` and ``resume`` wait for their task by
    default. ``shutdown``, ``reboot`` and ``suspend`` can take minutes
    and return pending results unless ``options.wait`` is set.
    ``options.async_mode`` makes every operation asynchronous.

    Args:
        guest_repository: Power state endpoints.
        resolver: Resolver mapping VMIDs to guests.
        task_repository: Repository used to wait for tasks.
        options: Execution options.
    """

    SYNC_OPERATIONS = frozenset(
        {Operation.START, Operation.STOP, Operation.RESET, Operation.RESUME}
    )
    ASYNC_OPERATIONS = frozenset({Operation.SHUTDOWN, Operation.REBOOT, Operation.SUSPEND})
    ALL_OPERATIONS = SYNC_OPERATIONS | ASYNC_OPERATIONS

    def __init__(
        self,
        guest_repository: GuestRepository,
        resolver: ResourceResolver,
        task_repository: TaskRepository,
        options: OperationOptions | None = None,
    ) -> None:
        super().__init__(resolver, task_repository, options)
        self.guest_repository = guest_repository

    def is_sync(self, operation: Operation) -> bool:
        """Whether ``operation`` waits for its task under the current options."""
        if self.options.async_mode:
            return False
        if self.options.wait:
            return True
        return operation in self.SYNC_OPERATIONS

    def execute(
        self,
        operation: Operation,
        vmids: Sequence[int],
        node: str | None = None,
        resource_type: ResourceType | None = None,
    ) -> list[OperationResult]:
        """Apply a power action to each guest.

        Args:
            operation: Power action to perform.
            vmids: Guests to act on; empty means every guest.
            node: Only act on guests on this node.
            resource_type: Only act on guests of this kind.

        Raises:
            ValueError: If ``operation`` is not a power action.
        """
        if operation not in self.ALL_OPERATIONS:
            valid = ", ".join(sorted(op.value for op in self.ALL_OPERATIONS))
            raise ValueError(f"Unknown operation: {operation.value}. Valid: {valid}")

        resources = self.filter_by_node(self.resolve_resources(vmids, resource_type), node)
        return self.execute_multi(
            resources,
            operation,
            lambda r: self.guest_repository.action(r, operation),
            sync=self.is_sync(operation),
        )
