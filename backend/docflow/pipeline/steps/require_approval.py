"""
RequireApprovalHandler — opens an approval request and halts the run.

Returns a PENDING StepResult carrying the approval id; the executor
records it and moves the execution to PAUSED_FOR_APPROVAL.
"""

from __future__ import annotations

from docflow.core.constants import StepType
from docflow.pipeline.context import StepContext
from docflow.pipeline.errors import StepExecutionError
from docflow.pipeline.step import StepHandler
from docflow.schemas.approval import CreateApprovalRequest
from docflow.schemas.document import StepResult


class RequireApprovalHandler(StepHandler):
    step_type = StepType.REQUIRE_APPROVAL
    description = "Pause for a human approval decision"

    async def execute(self, ctx: StepContext) -> StepResult:
        started_at = self._now()
        gate = ctx.services.approval_gate
        if gate is None:
            raise StepExecutionError("No approval gate configured", **ctx.error_context())

        config = ctx.config
        approval = await gate.create_approval(CreateApprovalRequest(
            document_id=ctx.document.id,
            workflow_id=ctx.workflow.id,
            step_name=ctx.step.name,
            title=config.title,
            description=config.description,
            requester_id=config.requester_id,
            expires_in_hours=config.expires_in_hours,
            channel=config.channel,
            metadata={
                "filename": ctx.document.filename,
                "workflow_name": ctx.workflow.name,
                "position": ctx.position,
                "rejection_policy": config.rejection_policy,
            },
        ))

        ctx.log.info("Approval requested, pausing", approval_id=approval.id, expires_at=approval.expires_at)

        return self._pending(ctx, started_at, {
            "approval_id": approval.id,
            "status": "pending_approval",
            "expires_at": approval.expires_at.isoformat() if approval.expires_at else None,
        })
