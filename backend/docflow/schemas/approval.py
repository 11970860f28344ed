"""Approval request schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from docflow.core.constants import ApprovalStatus
from docflow.schemas.common import new_id, utcnow


class NotificationRef(BaseModel):
    """Handle on a posted message, used to update it in place."""

    channel: str
    ts: str


class ApprovalRequest(BaseModel):
    """A human decision a paused execution is waiting on."""

    id: str = Field(default_factory=new_id)
    document_id: str
    workflow_id: str
    step_name: str
    title: str = "Approval required"
    description: str = ""
    status: ApprovalStatus = ApprovalStatus.PENDING
    requester_id: str | None = None
    approver_id: str | None = None
    decision_reason: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    decided_at: datetime | None = None
    expires_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    notification_ref: NotificationRef | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalStatus.PENDING

    def is_overdue(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class CreateApprovalRequest(BaseModel):
    """Input to ApprovalGate.create_approval."""

    document_id: str
    workflow_id: str
    step_name: str
    title: str = "Approval required"
    description: str = ""
    requester_id: str | None = None
    # None uses the gate default (APPROVAL_DEFAULT_EXPIRY_HOURS)
    expires_in_hours: float | None = Field(default=None, gt=0)
    channel: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
