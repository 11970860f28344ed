"""
In-memory stores.

Same semantics as the SQL repositories: every read returns a copy and
every compare-and-set runs under one asyncio.Lock, so two coroutines
racing on PENDING → RUNNING behave like two workers racing on a row lock.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Collection

from docflow.core.constants import ApprovalStatus, ExecutionStatus, WorkflowStatus
from docflow.pipeline.errors import DocumentNotFoundError, WorkflowNotFoundError
from docflow.schemas.approval import ApprovalRequest, NotificationRef
from docflow.schemas.common import utcnow
from docflow.schemas.document import (
    ApprovalLogEntry,
    Document,
    StepResult,
    WorkflowExecutionState,
)
from docflow.schemas.workflow import WorkflowDefinition


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}
        self._lock = asyncio.Lock()

    def _require(self, document_id: str) -> Document:
        document = self._documents.get(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found", document_id=document_id)
        return document

    def _require_execution(self, document_id: str) -> WorkflowExecutionState:
        state = self._require(document_id).workflow_execution
        if state is None:
            raise DocumentNotFoundError(f"Document {document_id} has no execution", document_id=document_id)
        return state

    async def get(self, document_id: str) -> Document | None:
        document = self._documents.get(document_id)
        return document.model_copy(deep=True) if document else None

    async def create(self, document: Document) -> Document:
        async with self._lock:
            self._documents[document.id] = document.model_copy(deep=True)
        return document

    async def update(self, document_id: str, **fields: Any) -> Document:
        async with self._lock:
            document = self._require(document_id)
            updated = document.model_copy(update={**fields, "updated_at": utcnow()}, deep=True)
            self._documents[document_id] = updated
            return updated.model_copy(deep=True)

    async def init_execution(self, document_id: str, workflow_id: str) -> WorkflowExecutionState:
        async with self._lock:
            document = self._require(document_id)
            if document.workflow_execution is None:
                document.workflow_execution = WorkflowExecutionState(workflow_id=workflow_id)
                document.updated_at = utcnow()
            return document.workflow_execution.model_copy(deep=True)

    async def transition_execution(
        self,
        document_id: str,
        expected: Collection[ExecutionStatus],
        status: ExecutionStatus,
        *,
        approval: ApprovalLogEntry | None = None,
        **changes: Any,
    ) -> WorkflowExecutionState | None:
        async with self._lock:
            document = self._require(document_id)
            state = document.workflow_execution
            if state is None or state.status not in expected:
                return None
            update = {**changes, "status": status, "updated_at": utcnow()}
            if approval is not None:
                update["approvals"] = [*state.approvals, approval]
            document.workflow_execution = state.model_copy(update=update)
            return document.workflow_execution.model_copy(deep=True)

    async def append_step_result(self, document_id: str, result: StepResult) -> WorkflowExecutionState:
        async with self._lock:
            document = self._require(document_id)
            state = self._require_execution(document_id)
            document.workflow_execution = state.model_copy(update={
                "step_results": [*state.step_results, result],
                "updated_at": utcnow(),
            })
            return document.workflow_execution.model_copy(deep=True)

    async def append_integration_notification(self, document_id: str, entry: dict[str, Any]) -> None:
        async with self._lock:
            document = self._require(document_id)
            document.integration_notifications = [*document.integration_notifications, dict(entry)]


class InMemoryWorkflowStore:
    def __init__(self, workflows: list[WorkflowDefinition] | None = None) -> None:
        self._workflows: dict[str, WorkflowDefinition] = {w.id: w for w in workflows or []}
        self._lock = asyncio.Lock()

    async def get(self, workflow_id: str) -> WorkflowDefinition | None:
        workflow = self._workflows.get(workflow_id)
        return workflow.model_copy(deep=True) if workflow else None

    async def find_by_name(self, name: str) -> WorkflowDefinition | None:
        matches = [w for w in self._workflows.values() if w.name.lower() == name.lower()]
        if not matches:
            return None
        matches.sort(key=lambda w: (w.status != WorkflowStatus.ACTIVE, w.created_at))
        return matches[0].model_copy(deep=True)

    async def list(
        self,
        *,
        status: WorkflowStatus | None = None,
        is_template: bool | None = None,
    ) -> list[WorkflowDefinition]:
        return [
            w.model_copy(deep=True)
            for w in sorted(self._workflows.values(), key=lambda w: w.created_at)
            if (status is None or w.status == status)
            and (is_template is None or w.is_template == is_template)
        ]

    async def save(self, workflow: WorkflowDefinition) -> WorkflowDefinition:
        async with self._lock:
            self._workflows[workflow.id] = workflow.model_copy(deep=True)
        return workflow

    async def record_completion(self, workflow_id: str, completed_at: datetime) -> None:
        async with self._lock:
            workflow = self._workflows.get(workflow_id)
            if workflow is None:
                raise WorkflowNotFoundError(f"Workflow {workflow_id} not found", workflow_id=workflow_id)
            self._workflows[workflow_id] = workflow.model_copy(update={
                "execution_count": workflow.execution_count + 1,
                "last_executed_at": completed_at,
            })


class InMemoryApprovalStore:
    def __init__(self) -> None:
        self._approvals: dict[str, ApprovalRequest] = {}
        self._lock = asyncio.Lock()

    async def create(self, approval: ApprovalRequest) -> ApprovalRequest:
        async with self._lock:
            self._approvals[approval.id] = approval.model_copy(deep=True)
        return approval

    async def get(self, approval_id: str) -> ApprovalRequest | None:
        approval = self._approvals.get(approval_id)
        return approval.model_copy(deep=True) if approval else None

    async def transition(
        self,
        approval_id: str,
        status: ApprovalStatus,
        **changes: Any,
    ) -> ApprovalRequest | None:
        async with self._lock:
            approval = self._approvals.get(approval_id)
            if approval is None or approval.status != ApprovalStatus.PENDING:
                return None
            updated = approval.model_copy(update={**changes, "status": status})
            self._approvals[approval_id] = updated
            return updated.model_copy(deep=True)

    async def set_notification_ref(self, approval_id: str, ref: NotificationRef) -> None:
        async with self._lock:
            approval = self._approvals.get(approval_id)
            if approval is not None:
                self._approvals[approval_id] = approval.model_copy(update={"notification_ref": ref})

    async def list_pending(self) -> list[ApprovalRequest]:
        return self._select(lambda a: a.is_pending)

    async def list_overdue(self, now: datetime) -> list[ApprovalRequest]:
        return self._select(lambda a: a.is_pending and a.is_overdue(now))

    async def list_for_document(self, document_id: str) -> list[ApprovalRequest]:
        return self._select(lambda a: a.document_id == document_id)

    def _select(self, predicate) -> list[ApprovalRequest]:
        return [
            a.model_copy(deep=True)
            for a in sorted(self._approvals.values(), key=lambda a: a.created_at)
            if predicate(a)
        ]
