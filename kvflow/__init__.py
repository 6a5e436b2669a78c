"""kvflow: Azure Key Vault provisioning workflows with compensating cleanup."""

from .cleanup import CompensatingCleanup
from .contracts import (
    CleanupReport,
    ProvisionedResource,
    ResourceKind,
    ResourceRegistry,
    RoutingSlip,
    StepOutcome,
    StepSpec,
    WorkflowResult,
)
from .dispatch import WorkflowDispatcher
from .errors import (
    AuthenticationError,
    ConfigurationError,
    KvflowError,
    StepFailed,
    WorkflowAborted,
)
from .execute import WorkflowRunner
from .persistence import get_repository
from .services import get_services

__version__ = "0.1.0"
__all__ = [
    "AuthenticationError",
    "CleanupReport",
    "CompensatingCleanup",
    "ConfigurationError",
    "KvflowError",
    "ProvisionedResource",
    "ResourceKind",
    "ResourceRegistry",
    "RoutingSlip",
    "StepFailed",
    "StepOutcome",
    "StepSpec",
    "WorkflowAborted",
    "WorkflowDispatcher",
    "WorkflowResult",
    "WorkflowRunner",
    "get_repository",
    "get_services",
]
