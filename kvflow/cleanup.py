"""Compensating cleanup for resources created by a workflow."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Iterable, Mapping

from .contracts import (
    CleanupAttempt,
    CleanupReport,
    ProvisionedResource,
    ResourceKind,
    ResourceRegistry,
)

if TYPE_CHECKING:
    from .services import ServiceBundle

logger = logging.getLogger(__name__)

DeleteOperation = Callable[[ProvisionedResource], Awaitable[Any]]


class CompensatingCleanup:
    """Deletes registered resources, most recently created first.

    Each delete is awaited before the next one is issued: a resource group
    delete is recursive and long-running and must never overlap the delete of
    a resource living inside it. A failed delete is logged and recorded in the
    report; the remaining resources still get their delete attempt.
    """

    def __init__(self, operations: Mapping[ResourceKind, DeleteOperation]) -> None:
        self._operations: Dict[ResourceKind, DeleteOperation] = dict(operations)

    @classmethod
    def for_services(cls, services: "ServiceBundle") -> "CompensatingCleanup":
        """Build the kind -> delete mapping for a service bundle."""

        async def delete_group(resource: ProvisionedResource) -> None:
            await services.resource_groups.delete(resource.name)

        async def delete_vault(resource: ProvisionedResource) -> None:
            await services.vaults.delete(resource.resource_group, resource.name)

        return cls(
            {
                ResourceKind.RESOURCE_GROUP: delete_group,
                ResourceKind.VAULT: delete_vault,
            }
        )

    async def __call__(self, registry: ResourceRegistry) -> CleanupReport:
        """Drain ``registry``, deleting each resource."""
        report = CleanupReport()
        for resource in registry.drain():
            report.attempts.append(await self._delete(resource))

        if report.succeeded:
            logger.info(f"Cleanup finished, {len(report.attempts)} resource(s) deleted")
        else:
            logger.error(
                f"Cleanup finished with {len(report.failures)} failed delete(s) "
                f"out of {len(report.attempts)}"
            )
        return report

    async def delete_all(self, resources: Iterable[ProvisionedResource]) -> CleanupReport:
        """Run cleanup over ``resources`` given in creation order."""
        return await self(ResourceRegistry(resources=list(resources)))

    async def _delete(self, resource: ProvisionedResource) -> CleanupAttempt:
        operation = self._operations.get(resource.kind)
        if operation is None:
            message = f"No delete operation registered for kind {resource.kind.value}"
            logger.error(f"Cannot delete {resource}: {message}")
            return CleanupAttempt(resource=resource, status="failed", error=message)

        logger.info(f"Deleting {resource}")
        try:
            await operation(resource)
        except Exception as e:
            message = getattr(e, "message", None) or str(e)
            logger.error(f"Failed to delete {resource}: {message}")
            return CleanupAttempt(resource=resource, status="failed", error=message)

        logger.info(f"Deleted {resource}")
        return CleanupAttempt(resource=resource, status="deleted")
