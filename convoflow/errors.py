"""
Error taxonomy for Convoflow.

User-correctable errors (validation, planning) carry the full detail the
workflow author needs. Internal errors (compilation defects, provider
outages) are logged with context by the raiser and surfaced opaquely.

Moderation flags are not errors: a flagged message produces a normal
result with ``flagged=True``.
"""
from __future__ import annotations

from typing import Any, Sequence


class ConvoflowError(Exception):
    """Base class for all Convoflow errors."""

    user_facing: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Serializable envelope for the API layer."""
        if self.user_facing:
            message = str(self)
        else:
            message = "Internal workflow error"
        return {"error": type(self).__name__, "message": message}


# =============================================================================
# Authoring errors (surfaced verbatim)
# =============================================================================


class ValidationError(ConvoflowError):
    """
    Raised when a graph is structurally invalid.

    Carries every problem found so the editor can show them all at once.
    """

    user_facing = True

    def __init__(self, errors: Sequence[str]):
        self.errors = list(errors)
        super().__init__(f"Workflow validation failed: {', '.join(self.errors)}")

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["errors"] = list(self.errors)
        return payload


class PlanningError(ValidationError):
    """Raised when no entry point can be found in a graph."""

    def __init__(self, message: str):
        self.errors = [message]
        ConvoflowError.__init__(self, message)


# =============================================================================
# Internal errors (logged, surfaced opaquely)
# =============================================================================


class CompilationError(ConvoflowError):
    """Raised when the validator, planner and compiler disagree."""


class RuntimeNotLoadedError(ConvoflowError):
    """Raised when executing for a tenant with no active workflow."""

    user_facing = True
    status_code = 503

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"No active workflow found for tenant {tenant_id}")


class ExecutionError(ConvoflowError):
    """
    Raised when the model provider fails or times out.

    The engine never retries. ``retryable`` tells the caller whether
    a retry is likely to help.
    """

    def __init__(
        self,
        message: str,
        *,
        tenant_id: str | None = None,
        retryable: bool = False,
    ):
        self.tenant_id = tenant_id
        self.retryable = retryable
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["retryable"] = self.retryable
        return payload


# =============================================================================
# Lifecycle errors
# =============================================================================


class WorkflowNotFoundError(ConvoflowError):
    """Raised when a workflow id does not resolve for the tenant."""

    user_facing = True
    status_code = 404

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


class VersionNotFoundError(ConvoflowError):
    """Raised when a requested version snapshot does not exist."""

    user_facing = True
    status_code = 404

    def __init__(self, workflow_id: str, version: int):
        self.workflow_id = workflow_id
        self.version = version
        super().__init__(f"Version {version} not found for workflow {workflow_id}")


class WorkflowStateError(ConvoflowError):
    """Raised when a lifecycle transition is not allowed."""

    user_facing = True
    status_code = 409
