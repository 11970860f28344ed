"""
DocumentRecord — one row per uploaded document.

The workflow execution state is a single JSONB column: the engine
always reads and writes it whole, under a row lock.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Column, DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID

from docflow.db.models.base import Base, new_id, utcnow


class DocumentRecord(Base):
    __tablename__ = "documents"

    id = Column(UUID(as_uuid=False), primary_key=True, default=new_id)

    # ── Upload ────────────────────────────────
    filename = Column(String(512), nullable=False, default="")
    mime_type = Column(String(255), nullable=False, default="application/octet-stream")
    size = Column(BigInteger, nullable=False, default=0)
    storage_key = Column(String(1024), nullable=False, default="")

    # ── Status ────────────────────────────────
    status = Column(String(50), nullable=False, default="UPLOADED", index=True)

    # ── Extraction output ─────────────────────
    extracted_text = Column(Text, nullable=True)
    extraction_stats = Column(JSONB, nullable=False, default=dict)
    structured_fields = Column(JSONB, nullable=False, default=dict)

    # ── Workflow ──────────────────────────────
    workflow_execution = Column(JSONB, nullable=True)
    integration_notifications = Column(JSONB, nullable=False, default=list)

    # ── Audit timestamps ─────────────────────
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<DocumentRecord {self.id} {self.filename!r} status={self.status}>"
