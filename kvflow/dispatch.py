"""Workflow builder for kvflow."""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from .contracts import StepFunction, StepSpec, WorkflowResult
from .execute import WorkflowRunner


class WorkflowDispatcher:
    """Assembles an ordered itinerary of steps and hands it to a runner."""

    def __init__(self) -> None:
        self._itinerary: List[StepSpec] = []

    @property
    def itinerary(self) -> List[StepSpec]:
        return list(self._itinerary)

    def add_step(
        self,
        name: str,
        func: StepFunction,
        settle_seconds: float = 0.0,
        description: Optional[str] = None,
    ) -> StepSpec:
        """Append a step. Step names identify steps in results and must be unique."""
        if any(step.name == name for step in self._itinerary):
            raise ValueError(f"Duplicate step name: {name}")
        step = StepSpec(
            name=name,
            func=func,
            settle_seconds=settle_seconds,
            description=description or (func.__doc__ or "").strip().split("\n")[0] or None,
        )
        self._itinerary.append(step)
        return step

    async def dispatch_workflow(
        self,
        runner: WorkflowRunner,
        initial_input: Any = None,
        variables: Optional[Dict[str, Any]] = None,
    ) -> WorkflowResult:
        """Run the current itinerary with ``runner``.

        Args:
            runner: Executes the steps and owns cleanup on failure.
            initial_input: Value handed to the first step.
            variables: Optional non-secret values recorded with the run.

        Returns:
            The workflow result, tagged with a fresh correlation id.
        """
        if not self._itinerary:
            raise ValueError("Cannot dispatch a workflow without steps")
        correlation_id = str(uuid.uuid4())
        return await runner.run(
            self._itinerary,
            initial_input=initial_input,
            correlation_id=correlation_id,
            payload=variables or {},
        )
