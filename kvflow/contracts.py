"""Core contracts for kvflow provisioning workflows."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class ResourceKind(str, Enum):
    """Kinds of remote resources a workflow can create."""

    RESOURCE_GROUP = "resource_group"
    VAULT = "vault"


class ProvisionedResource(BaseModel):
    """Identity of a resource confirmed created by a workflow step."""

    name: str
    kind: ResourceKind
    resource_group: Optional[str] = None

    def __str__(self) -> str:
        if self.resource_group and self.kind != ResourceKind.RESOURCE_GROUP:
            return f"{self.kind.value} {self.resource_group}/{self.name}"
        return f"{self.kind.value} {self.name}"


class StepOutcome(BaseModel):
    """Value returned by a step: its output and the resource it created, if any."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    output: Any = None
    created: Optional[ProvisionedResource] = None


StepFunction = Callable[[Any], Awaitable[Any]]


class StepSpec(BaseModel):
    """Defines one step in a workflow.

    ``func`` receives the previous step's output and returns either a
    ``StepOutcome`` or a plain output value. ``settle_seconds`` is an
    unconditional wait applied after the step succeeds, before its output is
    handed to the next step.
    """

    name: str
    func: StepFunction = Field(exclude=True, repr=False)
    settle_seconds: float = Field(default=0.0, ge=0.0)
    description: Optional[str] = None


class RoutingSlip(BaseModel):
    """Describes remaining and executed steps."""

    itinerary: List[StepSpec] = Field(default_factory=list)
    executed: List[StepSpec] = Field(default_factory=list)

    def next_step(self) -> Optional[StepSpec]:
        """Get the next step to execute."""
        return self.itinerary[0] if self.itinerary else None

    def is_finished(self) -> bool:
        """Return ``True`` when all steps have been executed."""
        return not self.itinerary

    def mark_complete(self, step: StepSpec) -> None:
        """Mark a step as completed and remove from itinerary."""
        if self.itinerary and self.itinerary[0] is step:
            completed_step = self.itinerary.pop(0)
            self.executed.append(completed_step)

    def summary(self) -> dict:
        """Step names only, suitable for persistence."""
        return {
            "itinerary": [s.name for s in self.itinerary],
            "executed": [s.name for s in self.executed],
        }


class ResourceRegistry(BaseModel):
    """Append-only record of resources created during a run.

    Grows during the forward pass and is drained, most recent first, by the
    compensating cleanup.
    """

    resources: List[ProvisionedResource] = Field(default_factory=list)

    def register(self, resource: ProvisionedResource) -> None:
        logger.info(f"Registered {resource}")
        self.resources.append(resource)

    def drain(self) -> Iterator[ProvisionedResource]:
        """Remove and yield resources in reverse creation order."""
        while self.resources:
            yield self.resources.pop()

    def snapshot(self) -> List[ProvisionedResource]:
        return list(self.resources)


class CleanupAttempt(BaseModel):
    """Outcome of a single delete issued during cleanup."""

    resource: ProvisionedResource
    status: str  # deleted, failed
    error: Optional[str] = None


class CleanupReport(BaseModel):
    """Ordered record of every delete attempted during cleanup.

    ``error`` is set when the cleanup routine itself raised before finishing.
    """

    attempts: List[CleanupAttempt] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def failures(self) -> List[CleanupAttempt]:
        return [a for a in self.attempts if a.status == "failed"]

    @property
    def succeeded(self) -> bool:
        return not self.failures and self.error is None


class WorkflowResult(BaseModel):
    """Final outcome of a workflow run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    correlation_id: str
    status: str  # completed, failed
    output: Any = None
    failed_step: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    resources: List[ProvisionedResource] = Field(default_factory=list)
    cleanup: Optional[CleanupReport] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "completed"
