"""
Document and execution-state schemas.

The execution state lives on the document (one active execution per
document) and is the only thing the executor needs to resume a run on
another process: the next step to dispatch is always
`len(state.step_results)` in the workflow's enabled-step order.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from docflow.core.constants import (
    ACTIVE_EXECUTION_STATUSES,
    ApprovalStatus,
    DocumentStatus,
    ExecutionStatus,
    StepStatus,
    StepType,
)
from docflow.schemas.common import new_id, utcnow


class StepResult(BaseModel):
    """Outcome of one step.  Written once, never rewritten."""

    model_config = ConfigDict(frozen=True)

    step_name: str
    step_type: StepType
    position: int
    status: StepStatus
    result: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0


class ApprovalLogEntry(BaseModel):
    """A finalized approval applied to the execution."""

    approval_id: str
    step_name: str
    status: ApprovalStatus
    approver_id: str | None = None
    reason: str | None = None
    decided_at: datetime | None = None


class WorkflowExecutionState(BaseModel):
    """Progress of one workflow run against one document."""

    workflow_id: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    started_at: datetime | None = None
    paused_at: datetime | None = None
    completed_at: datetime | None = None
    step_results: list[StepResult] = Field(default_factory=list)
    pending_approval_id: str | None = None
    approvals: list[ApprovalLogEntry] = Field(default_factory=list)
    error: str | None = None
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_EXECUTION_STATUSES

    @property
    def next_step_index(self) -> int:
        """Index (in enabled-step order) of the first incomplete step."""
        return len(self.step_results)


class Document(BaseModel):
    """An uploaded document and everything the workflow wrote about it."""

    id: str = Field(default_factory=new_id)
    filename: str = ""
    mime_type: str = "application/octet-stream"
    size: int = 0
    storage_key: str = ""
    status: DocumentStatus = DocumentStatus.UPLOADED
    extracted_text: str | None = None
    extraction_stats: dict[str, Any] = Field(default_factory=dict)
    structured_fields: dict[str, Any] = Field(default_factory=dict)
    workflow_execution: WorkflowExecutionState | None = None
    integration_notifications: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
