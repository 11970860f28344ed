"""
Domain-specific exception hierarchy for the workflow engine.

All engine exceptions inherit from WorkflowError so callers can catch
broadly or narrowly as needed.  Each exception carries structured
context (document, workflow, step) for logging/debugging.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base exception for all workflow engine errors."""

    def __init__(
        self,
        message: str,
        *,
        document_id: str | None = None,
        workflow_id: str | None = None,
        step_name: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.document_id = document_id
        self.workflow_id = workflow_id
        self.step_name = step_name
        self.details = details or {}
        super().__init__(message)


class StepExecutionError(WorkflowError):
    """A step failed during execution."""
    pass


class StepPreconditionError(StepExecutionError):
    """A step ran before the artifact it depends on exists."""
    pass


class UnknownStepTypeError(WorkflowError):
    """No handler is registered for a step type."""

    def __init__(self, step_type: str, **kwargs) -> None:
        self.step_type = step_type
        super().__init__(f"No handler registered for step type '{step_type}'", **kwargs)


class DocumentNotFoundError(WorkflowError):
    """The document id does not exist in the document store."""
    pass


class WorkflowNotFoundError(WorkflowError):
    """The workflow id does not exist in the workflow store."""
    pass


class WorkflowNotRunnableError(WorkflowError):
    """The workflow exists but is not ACTIVE."""
    pass


# ── Approvals ────────────────────────────────────────────

class ApprovalError(WorkflowError):
    """Base for approval gate failures."""

    def __init__(self, message: str, *, approval_id: str | None = None, **kwargs) -> None:
        self.approval_id = approval_id
        super().__init__(message, **kwargs)


class ApprovalNotFoundError(ApprovalError):
    """The approval id does not exist."""
    pass


class ApprovalNotPendingError(ApprovalError):
    """A decision was submitted for an approval that is already final."""

    def __init__(self, message: str, *, status: str | None = None, **kwargs) -> None:
        self.status = status
        super().__init__(message, **kwargs)


class ApprovalExpiredError(ApprovalError):
    """A decision arrived after the approval deadline; the approval is now EXPIRED."""
    pass


# ── External services ────────────────────────────────────

class InferenceError(WorkflowError):
    """The inference service returned an error or an unreadable payload."""
    pass


class InferenceUnavailableError(InferenceError):
    """The inference service is disabled, loading, or unreachable."""
    pass


class NotificationError(WorkflowError):
    """The notification channel rejected a message."""
    pass


class IntegrationError(WorkflowError):
    """An outbound integration (webhook, Slack) failed."""

    def __init__(self, message: str, *, integration: str | None = None, **kwargs) -> None:
        self.integration = integration
        super().__init__(message, **kwargs)


class StorageError(WorkflowError):
    """Document bytes could not be read from the blob store."""
    pass
