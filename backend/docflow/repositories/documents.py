"""
Document repository — SQLAlchemy implementation of DocumentStore.

Repository rules:
- Module functions are pure data access: they receive an AsyncSession,
  flush, and never commit
- SqlDocumentStore owns the transaction: one method call, one transaction
- Compare-and-set paths lock the row (SELECT ... FOR UPDATE)
"""

from __future__ import annotations

from typing import Any, Collection

from pydantic_core import to_jsonable_python
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docflow.core.constants import ExecutionStatus
from docflow.db.models.document import DocumentRecord
from docflow.pipeline.errors import DocumentNotFoundError
from docflow.schemas.common import utcnow
from docflow.schemas.document import (
    ApprovalLogEntry,
    Document,
    StepResult,
    WorkflowExecutionState,
)

_JSON_FIELDS = {"extraction_stats", "structured_fields", "integration_notifications"}


def to_schema(row: DocumentRecord) -> Document:
    return Document.model_validate({
        "id": row.id,
        "filename": row.filename,
        "mime_type": row.mime_type,
        "size": row.size,
        "storage_key": row.storage_key,
        "status": row.status,
        "extracted_text": row.extracted_text,
        "extraction_stats": row.extraction_stats or {},
        "structured_fields": row.structured_fields or {},
        "workflow_execution": row.workflow_execution,
        "integration_notifications": row.integration_notifications or [],
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    })


def _execution(row: DocumentRecord) -> WorkflowExecutionState | None:
    if row.workflow_execution is None:
        return None
    return WorkflowExecutionState.model_validate(row.workflow_execution)


def _store_execution(row: DocumentRecord, state: WorkflowExecutionState) -> None:
    row.workflow_execution = state.model_dump(mode="json")
    row.updated_at = utcnow()


# ── Data access ──────────────────────────────────────────

async def get_document(db: AsyncSession, document_id: str, *, for_update: bool = False) -> DocumentRecord | None:
    stmt = select(DocumentRecord).where(DocumentRecord.id == document_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def require_document(db: AsyncSession, document_id: str, *, for_update: bool = False) -> DocumentRecord:
    row = await get_document(db, document_id, for_update=for_update)
    if row is None:
        raise DocumentNotFoundError(f"Document {document_id} not found", document_id=document_id)
    return row


async def create_document(db: AsyncSession, document: Document) -> DocumentRecord:
    data = document.model_dump(mode="json")
    row = DocumentRecord(**{**data, "created_at": document.created_at, "updated_at": document.updated_at})
    db.add(row)
    await db.flush()
    return row


async def update_document(db: AsyncSession, document_id: str, **fields: Any) -> DocumentRecord:
    row = await require_document(db, document_id, for_update=True)
    for key, value in fields.items():
        if key == "workflow_execution":
            raise ValueError("workflow_execution is written through the execution methods")
        setattr(row, key, to_jsonable_python(value) if key in _JSON_FIELDS else value)
    row.updated_at = utcnow()
    await db.flush()
    return row


# ── Store ────────────────────────────────────────────────

class SqlDocumentStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, document_id: str) -> Document | None:
        async with self._session_factory() as db:
            row = await get_document(db, document_id)
            return to_schema(row) if row else None

    async def create(self, document: Document) -> Document:
        async with self._session_factory() as db, db.begin():
            await create_document(db, document)
        return document

    async def update(self, document_id: str, **fields: Any) -> Document:
        async with self._session_factory() as db, db.begin():
            row = await update_document(db, document_id, **fields)
            return to_schema(row)

    async def init_execution(self, document_id: str, workflow_id: str) -> WorkflowExecutionState:
        async with self._session_factory() as db, db.begin():
            row = await require_document(db, document_id, for_update=True)
            state = _execution(row)
            if state is None:
                state = WorkflowExecutionState(workflow_id=workflow_id)
                _store_execution(row, state)
                await db.flush()
            return state

    async def transition_execution(
        self,
        document_id: str,
        expected: Collection[ExecutionStatus],
        status: ExecutionStatus,
        *,
        approval: ApprovalLogEntry | None = None,
        **changes: Any,
    ) -> WorkflowExecutionState | None:
        async with self._session_factory() as db, db.begin():
            row = await require_document(db, document_id, for_update=True)
            state = _execution(row)
            if state is None or state.status not in expected:
                return None
            update = {**changes, "status": status, "updated_at": utcnow()}
            if approval is not None:
                update["approvals"] = [*state.approvals, approval]
            state = state.model_copy(update=update)
            _store_execution(row, state)
            await db.flush()
            return state

    async def append_step_result(self, document_id: str, result: StepResult) -> WorkflowExecutionState:
        async with self._session_factory() as db, db.begin():
            row = await require_document(db, document_id, for_update=True)
            state = _execution(row)
            if state is None:
                raise DocumentNotFoundError(f"Document {document_id} has no execution", document_id=document_id)
            state = state.model_copy(update={"step_results": [*state.step_results, result], "updated_at": utcnow()})
            _store_execution(row, state)
            await db.flush()
            return state

    async def append_integration_notification(self, document_id: str, entry: dict[str, Any]) -> None:
        async with self._session_factory() as db, db.begin():
            row = await require_document(db, document_id, for_update=True)
            row.integration_notifications = [*(row.integration_notifications or []), to_jsonable_python(entry)]
            await db.flush()
