"""Exception hierarchy for kvflow workflows."""

from __future__ import annotations

from typing import Iterable, List, Optional


class KvflowError(Exception):
    """Base class for all kvflow errors."""


class ConfigurationError(KvflowError):
    """Raised when required configuration values are missing.

    Always raised before any remote call is made.
    """

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing: List[str] = list(missing)
        super().__init__(
            "please set/export the following environment variables: "
            + ", ".join(self.missing)
        )


class AuthenticationError(KvflowError):
    """Raised when a credential cannot be acquired from the identity provider."""


class StepFailed(KvflowError):
    """A workflow step was rejected by the remote service.

    The original exception is kept as ``error`` (and ``__cause__`` when raised
    with ``from``). ``error_code`` and ``error_message`` carry the service error
    payload when the failure came from an Azure SDK ``HttpResponseError``.
    """

    def __init__(self, step_name: str, error: BaseException) -> None:
        self.step_name = step_name
        self.error = error
        self.error_code: Optional[str] = _service_error_code(error)
        self.error_message: str = getattr(error, "message", None) or str(error)
        super().__init__(f"Step {step_name} failed: {self.error_message}")


class WorkflowAborted(KvflowError):
    """Abort was requested before ``step_name`` started."""

    def __init__(self, step_name: str) -> None:
        self.step_name = step_name
        self.error_code: Optional[str] = None
        self.error_message = f"Workflow aborted before step {step_name}"
        super().__init__(self.error_message)


def _service_error_code(error: BaseException) -> Optional[str]:
    odata_error = getattr(error, "error", None)
    code = getattr(odata_error, "code", None)
    if code is None:
        code = getattr(error, "error_code", None)
    return str(code) if code is not None else None
