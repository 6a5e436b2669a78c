import uuid

import pytest

import kvflow.persistence as persistence
from kvflow.persistence import (
    InMemoryWorkflowRepository,
    SQLiteWorkflowRepository,
    get_repository,
)

RESOURCES = [
    {"name": "testrg1", "kind": "resource_group", "resource_group": None},
    {"name": "testkv2", "kind": "vault", "resource_group": "testrg1"},
]


@pytest.fixture(params=["sqlite", "inmemory"])
def repo(request, tmp_path):
    if request.param == "sqlite":
        return SQLiteWorkflowRepository(tmp_path / "wf.db")
    return InMemoryWorkflowRepository()


@pytest.mark.asyncio
async def test_repository_crud(repo):
    corr_id = str(uuid.uuid4())
    routing_slip = {"itinerary": ["step1"], "executed": []}
    payload = {"location": "westus"}

    await repo.create_workflow(corr_id, routing_slip, payload)
    await repo.mark_step_started(corr_id, "step1")
    await repo.mark_step_completed(corr_id, "step1", status="completed", output={"x": 1})
    await repo.update_resources(corr_id, RESOURCES)
    await repo.update_routing_slip(corr_id, {"itinerary": [], "executed": ["step1"]})
    await repo.mark_workflow_completed(corr_id)

    wf = await repo.get_workflow(corr_id)
    assert wf is not None
    assert wf.correlation_id == corr_id
    assert wf.routing_slip == {"itinerary": [], "executed": ["step1"]}
    assert wf.payload == {"location": "westus"}
    assert wf.resources == RESOURCES
    assert wf.status == "completed"
    assert len(wf.steps) == 1
    step = wf.steps[0]
    assert step.step_name == "step1"
    assert step.status == "completed"
    assert step.output == {"x": 1}
    assert step.started_at is not None and step.completed_at is not None

    all_wfs = await repo.list_workflows()
    assert any(w.correlation_id == corr_id for w in all_wfs)


@pytest.mark.asyncio
async def test_repository_idempotent_step_updates(repo):
    corr_id = str(uuid.uuid4())
    await repo.create_workflow(corr_id, {"itinerary": ["step1"]}, {})

    # Duplicate calls should not create duplicate records
    await repo.mark_step_started(corr_id, "step1")
    await repo.mark_step_started(corr_id, "step1")
    await repo.mark_step_completed(corr_id, "step1", status="failed")
    await repo.mark_step_completed(corr_id, "step1", status="completed")

    wf = await repo.get_workflow(corr_id)
    assert len(wf.steps) == 1
    assert wf.steps[0].status == "failed"


@pytest.mark.asyncio
async def test_missing_workflow_returns_none(repo):
    assert await repo.get_workflow("missing") is None


@pytest.mark.asyncio
async def test_sqlite_history_survives_reopen(tmp_path):
    db_path = tmp_path / "wf.db"
    await SQLiteWorkflowRepository(db_path).create_workflow("run-1", {}, {})

    reopened = SQLiteWorkflowRepository(db_path)
    wf = await reopened.get_workflow("run-1")
    assert wf.status == "in_progress"


def test_get_repository_backends(tmp_path):
    default = get_repository()
    assert isinstance(default, InMemoryWorkflowRepository)
    assert get_repository() is default

    sqlite = get_repository(f"sqlite://{tmp_path / 'wf.db'}")
    assert isinstance(sqlite, SQLiteWorkflowRepository)
    assert persistence._repository_instance is sqlite

    with pytest.raises(ValueError):
        get_repository("postgresql://localhost/kvflow")
