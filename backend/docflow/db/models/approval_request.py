"""ApprovalRequestRecord — human decisions paused executions wait on."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID

from docflow.db.models.base import Base, new_id, utcnow


class ApprovalRequestRecord(Base):
    __tablename__ = "approval_requests"

    id = Column(UUID(as_uuid=False), primary_key=True, default=new_id)
    document_id = Column(UUID(as_uuid=False), nullable=False, index=True)
    workflow_id = Column(UUID(as_uuid=False), nullable=False)
    step_name = Column(String(200), nullable=False)

    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False, default="")

    # PENDING is the only state that may change
    status = Column(String(50), nullable=False, default="PENDING", index=True)

    requester_id = Column(String(255), nullable=True)
    approver_id = Column(String(255), nullable=True)
    decision_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)

    # "metadata" is reserved on declarative classes
    request_metadata = Column("metadata", JSONB, nullable=False, default=dict)
    notification_ref = Column(JSONB, nullable=True)

    def __repr__(self) -> str:
        return f"<ApprovalRequestRecord {self.id} status={self.status}>"
