"""Snapshot operations across one or many guests."""

from __future__ import annotations

import builtins
from collections.abc import Sequence
from typing import TYPE_CHECKING

from pvectl.core.exceptions import ApiError, ResourceNotFoundError
from pvectl.core.orchestration import MultiResourceService, OperationOptions
from pvectl.models.operation import Operation, OperationResult, ResultState
from pvectl.models.resource import ResourceRef
from pvectl.models.snapshot import (
    CURRENT_SNAPSHOT,
    Snapshot,
    SnapshotDescription,
    SnapshotEntry,
)
from pvectl.utils.logging import get_logger

if TYPE_CHECKING:
    from pvectl.core.repositories import SnapshotRepository, TaskRepository
    from pvectl.core.resolver import ResourceResolver

logger = get_logger("snapshots")


class SnapshotService(MultiResourceService):
    """Lists, describes, creates, deletes and rolls back snapshots.

    An empty VMID list means every guest in the cluster. Per-guest
    failures are reported as failed results, never raised.

    Args:
        snapshot_repository: Snapshot endpoints.
        resolver: Resolver mapping VMIDs to guests.
        task_repository: Repository used to wait for tasks.
        options: Execution options.

    Example:
        >>> service = SnapshotService(snapshots, resolver, tasks)
        >>> results = service.create([100, 101], "before-upgrade")
        >>> [r.status_text for r in results]
        ['Success', 'Success']
    """

    def __init__(
        self,
        snapshot_repository: SnapshotRepository,
        resolver: ResourceResolver,
        task_repository: TaskRepository,
        options: OperationOptions | None = None,
    ) -> None:
        super().__init__(resolver, task_repository, options)
        self.snapshot_repository = snapshot_repository

    def _targets(self, vmids: Sequence[int], node: str | None) -> list[ResourceRef]:
        return self.filter_by_node(self.resolve_resources(vmids), node)

    def list(self, vmids: Sequence[int], node: str | None = None) -> list[Snapshot]:
        """List snapshots of the given guests (all guests when empty).

        Guests whose snapshots cannot be read are skipped with a warning.
        """
        snapshots: list[Snapshot] = []
        for resource in self._targets(vmids, node):
            try:
                snapshots.extend(self.snapshot_repository.list(resource))
            except ApiError as e:
                logger.warning(f"Could not list snapshots of {resource.vmid}: {e}")
        return snapshots

    def describe(
        self, vmids: Sequence[int], name: str, node: str | None = None
    ) -> SnapshotDescription:
        """Find a snapshot by name on the given guests.

        Returns:
            One entry per guest that has the snapshot, with its siblings.

        Raises:
            ResourceNotFoundError: If no guest matched or none has the
                snapshot.
        """
        resources = self._targets(vmids, node)
        if not resources:
            if vmids:
                raise ResourceNotFoundError(f"Resource {vmids[0]} not found")
            raise ResourceNotFoundError("No resources found in cluster")

        entries: list[SnapshotEntry] = []
        for resource in resources:
            try:
                siblings = self.snapshot_repository.list(resource)
            except ApiError as e:
                logger.warning(f"Could not list snapshots of {resource.vmid}: {e}")
                continue
            match = next((s for s in siblings if s.name == name), None)
            if match is not None:
                entries.append(SnapshotEntry(snapshot=match, siblings=siblings))

        if not entries:
            if vmids:
                where = "VM " + ", ".join(str(v) for v in vmids)
            else:
                where = "cluster"
            raise ResourceNotFoundError(f"Snapshot '{name}' not found on {where}")

        return SnapshotDescription(entries=entries)

    def create(
        self,
        vmids: Sequence[int],
        name: str,
        description: str | None = None,
        vmstate: bool = False,
        node: str | None = None,
    ) -> builtins.list[OperationResult]:
        """Create snapshot ``name`` on each guest."""
        return self.execute_multi(
            self._targets(vmids, node),
            Operation.CREATE,
            lambda r: self.snapshot_repository.create(
                r, name, description=description, vmstate=vmstate
            ),
            target=name,
        )

    def delete(
        self,
        vmids: Sequence[int],
        snapname: str,
        force: bool = False,
        node: str | None = None,
    ) -> builtins.list[OperationResult]:
        """Delete snapshot ``snapname`` from each guest.

        Without VMIDs only guests that actually have the snapshot are
        processed.
        """
        resources = self._targets(vmids, node)
        if not vmids:
            resources = [r for r in resources if self._has_snapshot(r, snapname)]

        return self.execute_multi(
            resources,
            Operation.DELETE,
            lambda r: self.snapshot_repository.delete(r, snapname, force=force),
            target=snapname,
        )

    def _has_snapshot(self, resource: ResourceRef, name: str) -> bool:
        try:
            return any(s.name == name for s in self.snapshot_repository.list(resource))
        except ApiError as e:
            logger.warning(f"Could not list snapshots of {resource.vmid}: {e}")
            return False

    def delete_all(
        self,
        vmids: Sequence[int],
        force: bool = False,
        node: str | None = None,
    ) -> builtins.list[OperationResult]:
        """Delete every snapshot of each guest.

        Produces one result per deleted snapshot. A guest without
        snapshots yields a single successful no-op result. With
        fail-fast, the first failure ends processing of all guests.
        """
        results: list[OperationResult] = []

        for resource in self._targets(vmids, node):
            try:
                snapshots = [
                    s
                    for s in self.snapshot_repository.list(resource)
                    if s.name != CURRENT_SNAPSHOT
                ]
            except Exception as e:
                logger.warning(f"Could not list snapshots of {resource.vmid}: {e}")
                results.append(
                    OperationResult(
                        resource=resource,
                        operation=Operation.DELETE,
                        state=ResultState.FAILED,
                        error=str(e),
                    )
                )
                if self.options.fail_fast:
                    break
                continue

            if not snapshots:
                results.append(
                    OperationResult(
                        resource=resource,
                        operation=Operation.DELETE,
                        state=ResultState.SUCCEEDED,
                        detail="No snapshots to delete",
                    )
                )
                continue

            stopped = False
            for snapshot in snapshots:
                result = self.execute_single(
                    resource,
                    Operation.DELETE,
                    lambda r, snapname=snapshot.name: self.snapshot_repository.delete(
                        r, snapname, force=force
                    ),
                    target=snapshot.name,
                )
                results.append(result)
                if self.options.fail_fast and result.failed:
                    stopped = True
                    break

            if stopped:
                logger.info(f"Stopping after failure on {resource.vmid} (fail-fast)")
                break

        return results

    def rollback(self, vmid: int, snapname: str, start: bool = False) -> OperationResult:
        """Roll one guest back to ``snapname``.

        Args:
            vmid: Guest to roll back.
            snapname: Snapshot to restore.
            start: Start the guest afterwards.

        Raises:
            ValueError: If ``vmid`` is not a positive integer.
        """
        if vmid < 1:
            raise ValueError(f"VMID must be a positive integer, got {vmid}")

        resource = self.resolver.resolve(vmid)
        if resource is None:
            return OperationResult(
                resource=ResourceRef(vmid=vmid),
                operation=Operation.ROLLBACK,
                state=ResultState.FAILED,
                error=f"Resource {vmid} not found",
                target=snapname,
            )

        return self.execute_single(
            resource,
            Operation.ROLLBACK,
            lambda r: self.snapshot_repository.rollback(r, snapname, start=start),
            target=snapname,
        )
