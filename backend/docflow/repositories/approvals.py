"""Approval repository — SQLAlchemy implementation of ApprovalStore."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic_core import to_jsonable_python
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docflow.core.constants import ApprovalStatus
from docflow.db.models.approval_request import ApprovalRequestRecord
from docflow.schemas.approval import ApprovalRequest, NotificationRef

_PENDING = ApprovalStatus.PENDING.value


def to_schema(row: ApprovalRequestRecord) -> ApprovalRequest:
    return ApprovalRequest.model_validate({
        "id": row.id,
        "document_id": row.document_id,
        "workflow_id": row.workflow_id,
        "step_name": row.step_name,
        "title": row.title,
        "description": row.description or "",
        "status": row.status,
        "requester_id": row.requester_id,
        "approver_id": row.approver_id,
        "decision_reason": row.decision_reason,
        "created_at": row.created_at,
        "decided_at": row.decided_at,
        "expires_at": row.expires_at,
        "metadata": row.request_metadata or {},
        "notification_ref": row.notification_ref,
    })


async def get_approval(db: AsyncSession, approval_id: str, *, for_update: bool = False) -> ApprovalRequestRecord | None:
    stmt = select(ApprovalRequestRecord).where(ApprovalRequestRecord.id == approval_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def create_approval(db: AsyncSession, approval: ApprovalRequest) -> ApprovalRequestRecord:
    row = ApprovalRequestRecord(
        id=approval.id,
        document_id=approval.document_id,
        workflow_id=approval.workflow_id,
        step_name=approval.step_name,
        title=approval.title,
        description=approval.description,
        status=approval.status.value,
        requester_id=approval.requester_id,
        created_at=approval.created_at,
        expires_at=approval.expires_at,
        request_metadata=to_jsonable_python(approval.metadata),
        notification_ref=approval.notification_ref.model_dump() if approval.notification_ref else None,
    )
    db.add(row)
    await db.flush()
    return row


async def list_approvals(db: AsyncSession, *conditions) -> list[ApprovalRequestRecord]:
    stmt = select(ApprovalRequestRecord).where(*conditions).order_by(ApprovalRequestRecord.created_at)
    result = await db.execute(stmt)
    return list(result.scalars().all())


class SqlApprovalStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, approval: ApprovalRequest) -> ApprovalRequest:
        async with self._session_factory() as db, db.begin():
            await create_approval(db, approval)
        return approval

    async def get(self, approval_id: str) -> ApprovalRequest | None:
        async with self._session_factory() as db:
            row = await get_approval(db, approval_id)
            return to_schema(row) if row else None

    async def transition(
        self,
        approval_id: str,
        status: ApprovalStatus,
        **changes: Any,
    ) -> ApprovalRequest | None:
        async with self._session_factory() as db, db.begin():
            row = await get_approval(db, approval_id, for_update=True)
            if row is None or row.status != _PENDING:
                return None
            row.status = status.value
            for key, value in changes.items():
                setattr(row, key, value)
            await db.flush()
            return to_schema(row)

    async def set_notification_ref(self, approval_id: str, ref: NotificationRef) -> None:
        async with self._session_factory() as db, db.begin():
            row = await get_approval(db, approval_id, for_update=True)
            if row is not None:
                row.notification_ref = ref.model_dump()
                await db.flush()

    async def list_pending(self) -> list[ApprovalRequest]:
        async with self._session_factory() as db:
            rows = await list_approvals(db, ApprovalRequestRecord.status == _PENDING)
            return [to_schema(r) for r in rows]

    async def list_overdue(self, now: datetime) -> list[ApprovalRequest]:
        async with self._session_factory() as db:
            rows = await list_approvals(
                db,
                ApprovalRequestRecord.status == _PENDING,
                ApprovalRequestRecord.expires_at.is_not(None),
                ApprovalRequestRecord.expires_at <= now,
            )
            return [to_schema(r) for r in rows]

    async def list_for_document(self, document_id: str) -> list[ApprovalRequest]:
        async with self._session_factory() as db:
            rows = await list_approvals(db, ApprovalRequestRecord.document_id == document_id)
            return [to_schema(r) for r in rows]
