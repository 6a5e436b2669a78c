"""Run history persistence for kvflow workflows."""

from __future__ import annotations

import os
from typing import Optional

from ..config import KvflowConfig, load_config
from .inmemory import InMemoryWorkflowRepository
from .models import StepRecord, WorkflowInstance
from .repository import WorkflowRepository
from .sqlite import SQLiteWorkflowRepository

_repository_instance: WorkflowRepository | None = None


def get_repository(
    database_url: Optional[str] = None, config: Optional[KvflowConfig] = None
) -> WorkflowRepository:
    """Factory function to obtain a workflow repository.

    The repository backend is selected based on ``database_url`` which can be
    provided explicitly, via environment variable ``KVFLOW_DATABASE_URL``, or
    from loaded configuration. When no database is configured, the process-wide
    in-memory repository is returned.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("KVFLOW_DATABASE_URL")
        or getattr(config, "database_url", None)
    )

    if not database_url:
        if not isinstance(_repository_instance, InMemoryWorkflowRepository):
            _repository_instance = InMemoryWorkflowRepository()
        return _repository_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _repository_instance = SQLiteWorkflowRepository(path)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    return _repository_instance


__all__ = [
    "StepRecord",
    "WorkflowInstance",
    "WorkflowRepository",
    "SQLiteWorkflowRepository",
    "InMemoryWorkflowRepository",
    "get_repository",
]
