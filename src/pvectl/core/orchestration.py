"""Multi-resource operation orchestration.

A command such as ``pvectl create snapshot 100 101 102`` runs the same
API call against several guests. MultiResourceService provides the
shared steps: resolve the targets, filter them by node, run the call
once per guest, optionally wait for the resulting task, and collect one
OperationResult per guest. A failure on one guest never prevents the
others from being attempted unless fail-fast is enabled.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pvectl.models.operation import Operation, OperationResult, ResultState
from pvectl.models.resource import ResourceRef, ResourceType
from pvectl.utils.logging import get_logger

if TYPE_CHECKING:
    from pvectl.core.repositories import TaskRepository
    from pvectl.core.resolver import ResourceResolver

logger = get_logger("orchestration")

DEFAULT_WAIT_TIMEOUT = 60

ResourceCall = Callable[[ResourceRef], "str | None"]


@dataclass(frozen=True)
class OperationOptions:
    """How a multi-resource operation is executed.

    Args:
        timeout: Seconds to wait for each task in synchronous mode.
        async_mode: Return immediately with pending results.
        fail_fast: Stop after the first failed result.
        wait: Force synchronous waiting for operations that are
            asynchronous by default. ``async_mode`` still wins.
    """

    timeout: float | None = None
    async_mode: bool = False
    fail_fast: bool = False
    wait: bool | None = None

    @property
    def wait_timeout(self) -> float:
        """Effective task wait timeout in seconds."""
        return self.timeout if self.timeout is not None else DEFAULT_WAIT_TIMEOUT


def filter_by_node(resources: Sequence[ResourceRef], node: str | None) -> list[ResourceRef]:
    """Keep resources on ``node``; every resource when ``node`` is None.

    Matching is exact and case-sensitive.
    """
    if node is None:
        return list(resources)
    return [r for r in resources if r.node == node]


class MultiResourceService:
    """Base class for services that fan one operation out to many guests.

    Args:
        resolver: Resolver mapping VMIDs to guests.
        task_repository: Repository used to wait for tasks.
        options: Execution options.
    """

    def __init__(
        self,
        resolver: ResourceResolver,
        task_repository: TaskRepository,
        options: OperationOptions | None = None,
    ) -> None:
        self.resolver = resolver
        self.task_repository = task_repository
        self.options = options or OperationOptions()

    def resolve_resources(
        self,
        vmids: Iterable[int],
        resource_type: ResourceType | None = None,
    ) -> list[ResourceRef]:
        """Resolve VMIDs, or every guest in the cluster when none are given.

        Unknown VMIDs are silently absent from the result.

        Args:
            vmids: VMIDs to resolve; empty means the whole cluster.
            resource_type: Keep only guests of this kind.
        """
        vmids = list(vmids)
        if vmids:
            resources = self.resolver.resolve_multiple(vmids)
        else:
            resources = self.resolver.resolve_all()

        if resource_type is not None:
            resources = [r for r in resources if r.type == resource_type]
        return resources

    def filter_by_node(
        self, resources: Sequence[ResourceRef], node: str | None
    ) -> list[ResourceRef]:
        """See :func:`filter_by_node`."""
        return filter_by_node(resources, node)

    def execute_single(
        self,
        resource: ResourceRef,
        operation: Operation,
        call: ResourceCall,
        target: str | None = None,
        sync: bool | None = None,
    ) -> OperationResult:
        """Run ``call`` for one resource and build its result.

        Args:
            resource: Target guest.
            operation: Verb being performed.
            call: Function issuing the API request; returns a UPID.
            target: Sub-resource name recorded on the result.
            sync: Wait for the task. Defaults to the inverse of
                ``options.async_mode``.

        Returns:
            The result. Exceptions raised by ``call`` or while waiting are
            converted into a failed result.
        """
        if sync is None:
            sync = not self.options.async_mode

        try:
            upid = call(resource)

            if not upid:
                return OperationResult(
                    resource=resource,
                    operation=operation,
                    state=ResultState.SUCCEEDED,
                    target=target,
                )

            if not sync:
                logger.info(f"{operation.value} dispatched for {resource.vmid}: {upid}")
                return OperationResult(
                    resource=resource,
                    operation=operation,
                    task_upid=upid,
                    state=ResultState.PENDING,
                    target=target,
                )

            task = self.task_repository.wait(upid, timeout=self.options.wait_timeout)
            result = OperationResult(
                resource=resource,
                operation=operation,
                task=task,
                state=ResultState.SUCCEEDED if task.successful else ResultState.FAILED,
                target=target,
            )
        except Exception as e:
            logger.warning(f"{operation.value} failed for {resource.vmid}: {e}")
            return OperationResult(
                resource=resource,
                operation=operation,
                state=ResultState.FAILED,
                error=str(e),
                target=target,
            )

        if result.failed:
            logger.warning(f"{operation.value} failed for {resource.vmid}: {result.message}")
        return result

    def execute_multi(
        self,
        resources: Sequence[ResourceRef],
        operation: Operation,
        call: ResourceCall,
        target: str | None = None,
        sync: bool | None = None,
    ) -> list[OperationResult]:
        """Run ``call`` for each resource in order.

        Stops after the first failed result when ``options.fail_fast``
        is set. Pending and successful results never stop the loop.
        """
        results: list[OperationResult] = []
        for resource in resources:
            result = self.execute_single(resource, operation, call, target=target, sync=sync)
            results.append(result)

            if self.options.fail_fast and result.failed:
                logger.info(f"Stopping after failure on {resource.vmid} (fail-fast)")
                break

        return results
