"""
Store protocols consumed by the workflow engine and the approval gate.

Two implementations ship with the package:
    - repositories.memory      lock-guarded, in-process (tests, demo)
    - repositories.documents / workflows / approvals
                               SQLAlchemy + Postgres with row locks

Compare-and-set methods return None when the expected state did not
hold; callers treat that as "someone else got there first".
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Collection, Protocol

from docflow.core.constants import ApprovalStatus, ExecutionStatus, WorkflowStatus
from docflow.schemas.approval import ApprovalRequest, NotificationRef
from docflow.schemas.document import (
    ApprovalLogEntry,
    Document,
    StepResult,
    WorkflowExecutionState,
)
from docflow.schemas.workflow import WorkflowDefinition


class DocumentStore(Protocol):
    async def get(self, document_id: str) -> Document | None: ...

    async def create(self, document: Document) -> Document: ...

    async def update(self, document_id: str, **fields: Any) -> Document:
        """Overwrite top-level document fields (never `workflow_execution`)."""
        ...

    async def init_execution(self, document_id: str, workflow_id: str) -> WorkflowExecutionState:
        """Create a PENDING execution if the document has none; return the current one."""
        ...

    async def transition_execution(
        self,
        document_id: str,
        expected: Collection[ExecutionStatus],
        status: ExecutionStatus,
        *,
        approval: ApprovalLogEntry | None = None,
        **changes: Any,
    ) -> WorkflowExecutionState | None:
        """
        Atomically move the execution to `status` if its current status is
        in `expected`, applying `changes` and appending `approval` to the
        approval log.  Returns the new state, or None if the guard failed.
        """
        ...

    async def append_step_result(self, document_id: str, result: StepResult) -> WorkflowExecutionState: ...

    async def append_integration_notification(self, document_id: str, entry: dict[str, Any]) -> None: ...


class WorkflowStore(Protocol):
    async def get(self, workflow_id: str) -> WorkflowDefinition | None: ...

    async def find_by_name(self, name: str) -> WorkflowDefinition | None:
        """Case-insensitive name match, preferring an ACTIVE definition."""
        ...

    async def list(
        self,
        *,
        status: WorkflowStatus | None = None,
        is_template: bool | None = None,
    ) -> list[WorkflowDefinition]: ...

    async def save(self, workflow: WorkflowDefinition) -> WorkflowDefinition: ...

    async def record_completion(self, workflow_id: str, completed_at: datetime) -> None:
        """Increment execution_count and stamp last_executed_at."""
        ...


class ApprovalStore(Protocol):
    async def create(self, approval: ApprovalRequest) -> ApprovalRequest: ...

    async def get(self, approval_id: str) -> ApprovalRequest | None: ...

    async def transition(
        self,
        approval_id: str,
        status: ApprovalStatus,
        **changes: Any,
    ) -> ApprovalRequest | None:
        """Finalize a PENDING approval.  None if it was not PENDING."""
        ...

    async def set_notification_ref(self, approval_id: str, ref: NotificationRef) -> None: ...

    async def list_pending(self) -> list[ApprovalRequest]: ...

    async def list_overdue(self, now: datetime) -> list[ApprovalRequest]: ...

    async def list_for_document(self, document_id: str) -> list[ApprovalRequest]: ...
