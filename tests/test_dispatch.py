"""Workflow dispatcher tests."""

import uuid

import pytest

from kvflow import WorkflowDispatcher, WorkflowRunner


async def noop(value):
    """Do nothing.

    Longer explanation that is not part of the description.
    """
    return value


@pytest.mark.asyncio
async def test_workflow_dispatch():
    """Test basic workflow dispatch."""
    dispatcher = WorkflowDispatcher()
    dispatcher.add_step("validate", noop)
    dispatcher.add_step("process", noop)
    dispatcher.add_step("notify", noop)

    result = await dispatcher.dispatch_workflow(WorkflowRunner(), initial_input="x")

    assert result.succeeded
    assert result.output == "x"
    assert uuid.UUID(result.correlation_id)


def test_add_step_keeps_order_and_description():
    dispatcher = WorkflowDispatcher()
    first = dispatcher.add_step("first", noop, settle_seconds=2.5)
    dispatcher.add_step("second", noop, description="explicit")

    assert [s.name for s in dispatcher.itinerary] == ["first", "second"]
    assert first.settle_seconds == 2.5
    assert first.description == "Do nothing."
    assert dispatcher.itinerary[1].description == "explicit"


def test_duplicate_step_name_rejected():
    dispatcher = WorkflowDispatcher()
    dispatcher.add_step("create_key", noop)

    with pytest.raises(ValueError):
        dispatcher.add_step("create_key", noop)


@pytest.mark.asyncio
async def test_empty_workflow_cannot_be_dispatched():
    with pytest.raises(ValueError):
        await WorkflowDispatcher().dispatch_workflow(WorkflowRunner())
