"""Workflow definition repository — SQLAlchemy implementation of WorkflowStore."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docflow.core.constants import WorkflowStatus
from docflow.db.models.workflow_definition import WorkflowDefinitionRecord
from docflow.pipeline.errors import WorkflowNotFoundError
from docflow.schemas.workflow import WorkflowDefinition


def to_schema(row: WorkflowDefinitionRecord) -> WorkflowDefinition:
    return WorkflowDefinition.model_validate({
        "id": row.id,
        "name": row.name,
        "description": row.description or "",
        "steps": row.steps or [],
        "trigger": row.trigger or {},
        "status": row.status,
        "is_template": row.is_template,
        "execution_count": row.execution_count or 0,
        "last_executed_at": row.last_executed_at,
        "created_at": row.created_at,
    })


async def get_workflow(db: AsyncSession, workflow_id: str) -> WorkflowDefinitionRecord | None:
    return await db.get(WorkflowDefinitionRecord, workflow_id)


async def find_workflow_by_name(db: AsyncSession, name: str) -> WorkflowDefinitionRecord | None:
    """Case-insensitive name match; ACTIVE rows first, then oldest."""
    active_first = case((WorkflowDefinitionRecord.status == WorkflowStatus.ACTIVE.value, 0), else_=1)
    stmt = (
        select(WorkflowDefinitionRecord)
        .where(func.lower(WorkflowDefinitionRecord.name) == name.lower())
        .order_by(active_first, WorkflowDefinitionRecord.created_at)
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def list_workflows(
    db: AsyncSession,
    *,
    status: WorkflowStatus | None = None,
    is_template: bool | None = None,
) -> list[WorkflowDefinitionRecord]:
    stmt = select(WorkflowDefinitionRecord).order_by(WorkflowDefinitionRecord.created_at)
    if status is not None:
        stmt = stmt.where(WorkflowDefinitionRecord.status == status.value)
    if is_template is not None:
        stmt = stmt.where(WorkflowDefinitionRecord.is_template.is_(is_template))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def upsert_workflow(db: AsyncSession, workflow: WorkflowDefinition) -> WorkflowDefinitionRecord:
    data = workflow.model_dump(mode="json", include={"name", "description", "steps", "trigger", "status", "is_template"})
    row = await get_workflow(db, workflow.id)
    if row is None:
        row = WorkflowDefinitionRecord(
            id=workflow.id,
            created_at=workflow.created_at,
            execution_count=workflow.execution_count,
            last_executed_at=workflow.last_executed_at,
            **data,
        )
        db.add(row)
    else:
        for key, value in data.items():
            setattr(row, key, value)
    await db.flush()
    return row


class SqlWorkflowStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, workflow_id: str) -> WorkflowDefinition | None:
        async with self._session_factory() as db:
            row = await get_workflow(db, workflow_id)
            return to_schema(row) if row else None

    async def find_by_name(self, name: str) -> WorkflowDefinition | None:
        async with self._session_factory() as db:
            row = await find_workflow_by_name(db, name)
            return to_schema(row) if row else None

    async def list(
        self,
        *,
        status: WorkflowStatus | None = None,
        is_template: bool | None = None,
    ) -> list[WorkflowDefinition]:
        async with self._session_factory() as db:
            return [to_schema(r) for r in await list_workflows(db, status=status, is_template=is_template)]

    async def save(self, workflow: WorkflowDefinition) -> WorkflowDefinition:
        async with self._session_factory() as db, db.begin():
            row = await upsert_workflow(db, workflow)
            return to_schema(row)

    async def record_completion(self, workflow_id: str, completed_at: datetime) -> None:
        async with self._session_factory() as db, db.begin():
            result = await db.execute(
                update(WorkflowDefinitionRecord)
                .where(WorkflowDefinitionRecord.id == workflow_id)
                .values(
                    execution_count=WorkflowDefinitionRecord.execution_count + 1,
                    last_executed_at=completed_at,
                )
            )
            if result.rowcount == 0:
                raise WorkflowNotFoundError(f"Workflow {workflow_id} not found", workflow_id=workflow_id)
