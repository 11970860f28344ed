"""WorkflowDefinitionRecord — workflow definitions and templates."""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID

from docflow.db.models.base import Base, new_id, utcnow


class WorkflowDefinitionRecord(Base):
    __tablename__ = "workflow_definitions"

    id = Column(UUID(as_uuid=False), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")

    # Ordered Step[] with typed configs
    steps = Column(JSONB, nullable=False, default=list)
    trigger = Column(JSONB, nullable=False, default=dict)

    status = Column(String(50), nullable=False, default="DRAFT", index=True)
    is_template = Column(Boolean, nullable=False, default=False)

    # ── Usage ─────────────────────────────────
    execution_count = Column(Integer, nullable=False, default=0)
    last_executed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<WorkflowDefinitionRecord {self.id} {self.name!r} status={self.status}>"
