"""Sequential workflow runner with compensating cleanup."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from .contracts import (
    CleanupAttempt,
    CleanupReport,
    ResourceRegistry,
    RoutingSlip,
    StepOutcome,
    StepSpec,
    WorkflowResult,
)
from .errors import StepFailed, WorkflowAborted
from .persistence import WorkflowRepository
from .utils import timing

logger = logging.getLogger(__name__)

CleanupRoutine = Callable[[ResourceRegistry], Awaitable[CleanupReport]]


class WorkflowRunner:
    """Executes workflow steps strictly one after another.

    Each step receives the previous step's output. Resources a step reports
    as created are registered once the step has returned successfully. The
    first failure stops the run and hands every registered resource to the
    cleanup routine. A successful run deletes nothing and returns the
    resources to the caller.

    Run history is best effort: a repository error is logged and the run
    carries on, so it can never skip the cleanup of created resources.
    """

    def __init__(
        self,
        cleanup: Optional[CleanupRoutine] = None,
        repository: WorkflowRepository | None = None,
    ) -> None:
        self._cleanup = cleanup
        self._repository = repository
        self._abort_requested = False

    def abort(self) -> None:
        """Stop the run before the next step starts. A running step is never interrupted."""
        self._abort_requested = True

    async def run(
        self,
        steps: Iterable[StepSpec],
        initial_input: Any = None,
        correlation_id: Optional[str] = None,
        payload: Optional[dict] = None,
    ) -> WorkflowResult:
        correlation_id = correlation_id or str(uuid.uuid4())
        slip = RoutingSlip(itinerary=list(steps))
        registry = ResourceRegistry()
        self._abort_requested = False

        await self._record("create_workflow", correlation_id, slip.summary(), payload)

        value = initial_input
        while not slip.is_finished():
            step = slip.next_step()
            if self._abort_requested:
                logger.warning(
                    f"Abort requested before step {step.name} for correlation_id={correlation_id}"
                )
                return await self._fail(
                    correlation_id, WorkflowAborted(step.name), registry
                )

            try:
                value = await self._run_step(correlation_id, step, value, registry)
            except StepFailed as failure:
                return await self._fail(correlation_id, failure, registry)

            slip.mark_complete(step)
            await self._record("update_routing_slip", correlation_id, slip.summary())

        resources = registry.snapshot()
        await self._record("mark_workflow_completed", correlation_id, "completed")
        logger.info(
            f"Workflow completed for correlation_id={correlation_id}, "
            f"{len(resources)} resource(s) left for explicit cleanup"
        )
        return WorkflowResult(
            correlation_id=correlation_id,
            status="completed",
            output=value,
            resources=resources,
        )

    async def _record(
        self, operation: str, correlation_id: str, *args: Any, **kwargs: Any
    ) -> None:
        if self._repository is None:
            return
        try:
            await getattr(self._repository, operation)(correlation_id, *args, **kwargs)
        except Exception as e:
            logger.error(
                f"Could not record {operation} for correlation_id={correlation_id}: {e}"
            )

    async def _run_step(
        self,
        correlation_id: str,
        step: StepSpec,
        value: Any,
        registry: ResourceRegistry,
    ) -> Any:
        logger.info(f"Starting step {step.name} for correlation_id={correlation_id}")
        await self._record("mark_step_started", correlation_id, step.name)

        try:
            result: Union[StepOutcome, Any] = await step.func(value)
        except Exception as e:
            failure = StepFailed(step.name, e)
            logger.error(
                f"Step {step.name} failed for correlation_id={correlation_id}: "
                f"{failure.error_message}"
                + (f" (code {failure.error_code})" if failure.error_code else "")
            )
            await self._record(
                "mark_step_completed",
                correlation_id,
                step.name,
                status="failed",
                output={"error": failure.error_message, "code": failure.error_code},
            )
            raise failure from e

        outcome = result if isinstance(result, StepOutcome) else StepOutcome(output=result)
        output: dict = {}
        if outcome.created is not None:
            registry.register(outcome.created)
            output["created"] = outcome.created.model_dump(mode="json")
            await self._record(
                "update_resources",
                correlation_id,
                [r.model_dump(mode="json") for r in registry.snapshot()],
            )

        await self._record(
            "mark_step_completed", correlation_id, step.name, status="completed", output=output
        )
        logger.info(f"Completed step {step.name} for correlation_id={correlation_id}")
        logger.debug(f"Step {step.name} output: {outcome.output!r}")

        if step.settle_seconds:
            logger.info(
                f"Waiting {step.settle_seconds}s after {step.name} for the new "
                "resource to become reachable"
            )
            await timing.settle(step.settle_seconds)

        return outcome.output

    async def _compensate(
        self, correlation_id: str, registry: ResourceRegistry
    ) -> CleanupReport:
        logger.info(
            f"Performing cleanup of {len(registry.resources)} resource(s) "
            f"for correlation_id={correlation_id}"
        )
        try:
            return await self._cleanup(registry)
        except Exception as e:
            # resources still registered never got a delete attempt
            message = f"Cleanup stopped: {e}"
            logger.error(f"{message} for correlation_id={correlation_id}")
            return CleanupReport(
                error=message,
                attempts=[
                    CleanupAttempt(resource=r, status="failed", error=message)
                    for r in reversed(registry.snapshot())
                ],
            )

    async def _fail(
        self,
        correlation_id: str,
        failure: StepFailed | WorkflowAborted,
        registry: ResourceRegistry,
    ) -> WorkflowResult:
        created = registry.snapshot()
        report: Optional[CleanupReport] = None
        if self._cleanup is not None:
            report = await self._compensate(correlation_id, registry)

        status = "compensated" if report is not None and report.succeeded else "failed"
        await self._record("mark_workflow_completed", correlation_id, status)

        return WorkflowResult(
            correlation_id=correlation_id,
            status="failed",
            failed_step=failure.step_name,
            error=failure.error_message,
            error_code=failure.error_code,
            resources=created,
            cleanup=report,
        )
