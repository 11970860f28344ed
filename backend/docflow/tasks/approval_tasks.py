"""
Celery tasks — approval decisions and the overdue sweep.
"""

import asyncio

import structlog

from docflow.pipeline.errors import ApprovalError
from docflow.runtime import build_runtime
from docflow.tasks import celery_app

logger = structlog.get_logger("tasks.approvals")


async def _decide(approval_id: str, decision: str, approver_id: str, reason: str | None) -> dict:
    async with build_runtime() as runtime:
        approval = await runtime.approval_gate.process_decision(approval_id, decision, approver_id, reason)
        return approval.model_dump(mode="json")


async def _sweep() -> dict:
    async with build_runtime() as runtime:
        expired = await runtime.approval_gate.expire_old_approvals()
        settled: list[dict] = []
        for approval in expired:
            result = await runtime.executor.settle_execution(approval.document_id)
            settled.append(result.to_dict())
        return {"expired": [a.id for a in expired], "settled": settled}


@celery_app.task(bind=True, name="docflow.tasks.approval_tasks.process_approval_decision")
def process_approval_decision(
    self,
    approval_id: str,
    decision: str,
    approver_id: str,
    reason: str | None = None,
):
    """
    Record an approve/reject decision and resume or settle the owning
    execution.  Approval errors are business outcomes, not crashes: they
    are returned to the caller instead of raised.
    """
    task_log = logger.bind(task_id=self.request.id, approval_id=approval_id, approver_id=approver_id)
    try:
        approval = asyncio.run(_decide(approval_id, decision, approver_id, reason))
    except ApprovalError as exc:
        task_log.warning("Approval decision rejected", error=str(exc), error_type=type(exc).__name__)
        return {"approval_id": approval_id, "error": str(exc), "error_type": type(exc).__name__}

    task_log.info("Approval decision processed", status=approval["status"])
    return approval


@celery_app.task(bind=True, name="docflow.tasks.approval_tasks.expire_overdue_approvals")
def expire_overdue_approvals(self):
    """Beat task: expire overdue approvals, then settle each paused execution."""
    task_log = logger.bind(task_id=self.request.id)
    summary = asyncio.run(_sweep())
    if summary["expired"]:
        task_log.info("Overdue approvals expired", count=len(summary["expired"]))
    return summary
