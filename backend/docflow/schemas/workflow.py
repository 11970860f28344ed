"""
Workflow definition schemas.

A WorkflowDefinition is an ordered list of typed steps.  Each step's
`config` is a closed tagged union keyed by the step type, so the
executor can dispatch on `step.type` and hand the handler a config
object of the matching class.

Stored JSON shape (config does not need to repeat the type)::

    {
        "name": "Invoice Processing Workflow",
        "status": "ACTIVE",
        "steps": [
            {"name": "extract", "type": "extract_text", "position": 0},
            {"name": "approve", "type": "require_approval", "position": 1,
             "config": {"title": "Approve invoice", "expires_in_hours": 48}}
        ]
    }
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, model_validator

from docflow.core.constants import (
    DocumentCategory,
    IntegrationType,
    RejectionPolicy,
    SelectionMode,
    StepType,
    WorkflowStatus,
)
from docflow.schemas.common import new_id, utcnow


# ── Step configs ─────────────────────────────────────────

class ExtractTextConfig(BaseModel):
    """Run the text extraction cascade on the document bytes."""

    type: Literal["extract_text"] = "extract_text"


class AnalyzeContentConfig(BaseModel):
    """Run field extraction on the already-extracted text."""

    type: Literal["analyze_content"] = "analyze_content"
    category: DocumentCategory | None = None
    confidence_threshold: float | None = Field(default=None, ge=0.0, le=1.0)


class SendNotificationConfig(BaseModel):
    """Notify every enabled integration of `integration_type`."""

    type: Literal["send_notification"] = "send_notification"
    integration_type: IntegrationType = IntegrationType.SLACK
    channel: str | None = None
    # Supports {filename}, {document_id}, {workflow_name}
    message: str | None = None


class StoreDataConfig(BaseModel):
    """Push the structured fields to every enabled integration of `integration_type`."""

    type: Literal["store_data"] = "store_data"
    integration_type: IntegrationType = IntegrationType.WEBHOOK
    include_text: bool = False


class RequireApprovalConfig(BaseModel):
    """Pause the execution until a human approves or rejects."""

    type: Literal["require_approval"] = "require_approval"
    title: str = "Approval required"
    description: str = ""
    expires_in_hours: float | None = Field(default=24, gt=0)
    channel: str | None = None
    requester_id: str | None = None
    rejection_policy: RejectionPolicy = RejectionPolicy.FAIL_WORKFLOW


StepConfig = Annotated[
    Union[
        ExtractTextConfig,
        AnalyzeContentConfig,
        SendNotificationConfig,
        StoreDataConfig,
        RequireApprovalConfig,
    ],
    Field(discriminator="type"),
]


# ── Step ─────────────────────────────────────────────────

class Step(BaseModel):
    """One typed unit of work in a workflow definition."""

    name: str = Field(..., min_length=1, max_length=200)
    type: StepType
    config: StepConfig
    position: int = 0
    enabled: bool = True

    @model_validator(mode="before")
    @classmethod
    def _tag_config(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        config = data.get("config") or {}
        step_type = data.get("type")
        if isinstance(config, dict) and "type" not in config and step_type is not None:
            data = {**data, "config": {**config, "type": str(step_type)}}
        return data

    @model_validator(mode="after")
    def _check_config_matches_type(self) -> Step:
        if self.config.type != self.type:
            raise ValueError(
                f"step '{self.name}' has type {self.type} but config for {self.config.type}"
            )
        return self


# ── Workflow ─────────────────────────────────────────────

class WorkflowTrigger(BaseModel):
    """When a workflow applies to a document."""

    mode: SelectionMode = SelectionMode.MANUAL
    category: DocumentCategory | None = None


class WorkflowDefinition(BaseModel):
    """An ordered list of steps plus publication and usage metadata."""

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    steps: list[Step] = Field(default_factory=list)
    status: WorkflowStatus = WorkflowStatus.DRAFT
    trigger: WorkflowTrigger = Field(default_factory=WorkflowTrigger)
    is_template: bool = False
    execution_count: int = 0
    last_executed_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def enabled_steps(self) -> list[Step]:
        """Enabled steps in ascending position order."""
        return sorted((s for s in self.steps if s.enabled), key=lambda s: s.position)

    def find_step(self, name: str) -> Step | None:
        for step in self.steps:
            if step.name == name:
                return step
        return None
