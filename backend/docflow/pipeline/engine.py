"""
WorkflowExecutor — the step state machine.

    PENDING ──claim──▶ RUNNING ──▶ COMPLETED
                         │   ╲
                         │    ╲──▶ FAILED   (step failure / cancellation)
                         ▼
               PAUSED_FOR_APPROVAL ──approve──▶ RUNNING
                         │
                         └──reject / expire──▶ FAILED or COMPLETED
                                               (per rejection_policy)

Responsibilities:
    - Claim the execution with a compare-and-set (idempotent entry)
    - Dispatch enabled steps in position order through the StepResolver
    - Append one StepResult per step, never rewriting earlier ones
    - Pause on require_approval and resume / settle from a decision
    - Keep document status in line with execution status

All execution state lives in the document store.  Nothing is held in
memory between calls, so resume can happen on any worker.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from docflow.core.constants import (
    ACTIVE_EXECUTION_STATUSES,
    ApprovalStatus,
    DocumentStatus,
    ExecutionStatus,
    RejectionPolicy,
    StepStatus,
    WorkflowStatus,
)
from docflow.core.logging import get_logger
from docflow.pipeline.context import StepContext, WorkflowServices
from docflow.pipeline.errors import (
    DocumentNotFoundError,
    WorkflowNotFoundError,
    WorkflowNotRunnableError,
)
from docflow.pipeline.step_resolver import StepResolver
from docflow.schemas.approval import ApprovalRequest
from docflow.schemas.common import utcnow
from docflow.schemas.document import (
    ApprovalLogEntry,
    Document,
    StepResult,
    WorkflowExecutionState,
)
from docflow.schemas.workflow import Step, WorkflowDefinition

_PAUSED = {ExecutionStatus.PAUSED_FOR_APPROVAL}
_RUNNING = {ExecutionStatus.RUNNING}


@dataclass
class WorkflowRunResult:
    """What one executor call did to an execution."""

    document_id: str
    workflow_id: str | None
    status: ExecutionStatus | None
    steps_completed: int = 0
    total_steps: int = 0
    pending_approval_id: str | None = None
    error: str | None = None
    noop: bool = False
    step_results: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_state(
        cls,
        document_id: str,
        state: WorkflowExecutionState | None,
        *,
        total_steps: int = 0,
        noop: bool = False,
    ) -> WorkflowRunResult:
        if state is None:
            return cls(document_id=document_id, workflow_id=None, status=None, noop=noop)
        return cls(
            document_id=document_id,
            workflow_id=state.workflow_id,
            status=state.status,
            steps_completed=sum(1 for r in state.step_results if r.status == StepStatus.COMPLETED),
            total_steps=total_steps,
            pending_approval_id=state.pending_approval_id,
            error=state.error,
            noop=noop,
            step_results=[r.model_dump(mode="json") for r in state.step_results],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "document_id": self.document_id,
            "workflow_id": self.workflow_id,
            "status": self.status,
            "steps_completed": self.steps_completed,
            "total_steps": self.total_steps,
            "pending_approval_id": self.pending_approval_id,
            "error": self.error,
            "noop": self.noop,
        }


class WorkflowExecutor:
    """
    Runs WorkflowDefinitions against Documents.

    Usage::

        executor = WorkflowExecutor(services)
        await executor.execute_workflow(document_id, workflow_id)
        ...  # paused; later, from the approval gate or a task:
        await executor.resume_execution(document_id)

    The executor attaches itself to `services.approval_gate` so decisions
    reach resume_execution / settle_execution.
    """

    def __init__(
        self,
        services: WorkflowServices,
        resolver: StepResolver | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.services = services
        self.resolver = resolver or StepResolver()
        self.clock = clock
        self.logger = get_logger("docflow.pipeline.engine")
        if services.approval_gate is not None:
            services.approval_gate.attach(self)

    # ═══════════════════════════════════════════════════════
    #  Entry points
    # ═══════════════════════════════════════════════════════

    async def execute_workflow(self, document_id: str, workflow_id: str) -> WorkflowRunResult:
        """
        Start `workflow_id` on `document_id`.  Safe to call repeatedly:
        only the caller that moves PENDING → RUNNING runs anything.
        """
        log = self.logger.bind(document_id=document_id, workflow_id=workflow_id)
        await self._require_document(document_id)
        workflow = await self._require_workflow(workflow_id)
        if workflow.status != WorkflowStatus.ACTIVE:
            raise WorkflowNotRunnableError(
                f"Workflow '{workflow.name}' is {workflow.status}, not ACTIVE",
                document_id=document_id,
                workflow_id=workflow_id,
            )

        state = await self.services.documents.init_execution(document_id, workflow_id)
        if state.workflow_id != workflow_id:
            log.warning("Document already bound to another workflow", current_workflow_id=state.workflow_id)
            return WorkflowRunResult.from_state(document_id, state, noop=True)
        if state.status != ExecutionStatus.PENDING:
            log.info("Execution not pending, nothing to do", status=state.status)
            return WorkflowRunResult.from_state(document_id, state, total_steps=len(workflow.enabled_steps), noop=True)

        claimed = await self.services.documents.transition_execution(
            document_id,
            {ExecutionStatus.PENDING},
            ExecutionStatus.RUNNING,
            started_at=self.clock(),
        )
        if claimed is None:
            log.info("Execution claimed by another worker")
            current = await self._current_state(document_id)
            return WorkflowRunResult.from_state(document_id, current, total_steps=len(workflow.enabled_steps), noop=True)

        await self.services.documents.update(document_id, status=DocumentStatus.PROCESSING)
        log.info("Workflow started", workflow_name=workflow.name, total_steps=len(workflow.enabled_steps))
        return await self._run_steps(document_id, workflow)

    async def resume_execution(self, document_id: str) -> WorkflowRunResult:
        """Continue a paused execution whose approval was APPROVED."""
        log = self.logger.bind(document_id=document_id)
        state = await self._current_state(document_id)
        if state is None or state.status != ExecutionStatus.PAUSED_FOR_APPROVAL:
            log.info("Execution not paused, nothing to resume", status=state.status if state else None)
            return WorkflowRunResult.from_state(document_id, state, noop=True)

        approval = await self._pending_approval(state)
        if approval is None:
            log.error("Paused execution references a missing approval", approval_id=state.pending_approval_id)
            return WorkflowRunResult.from_state(document_id, state, noop=True)
        if approval.status == ApprovalStatus.PENDING:
            log.info("Approval still pending", approval_id=approval.id)
            return WorkflowRunResult.from_state(document_id, state, noop=True)
        if approval.status != ApprovalStatus.APPROVED:
            return await self.settle_execution(document_id)

        workflow = await self._require_workflow(state.workflow_id)
        if await self._apply_approval(document_id, approval) is None:
            log.info("Execution resumed by another worker", approval_id=approval.id)
            current = await self._current_state(document_id)
            return WorkflowRunResult.from_state(document_id, current, noop=True)

        log.info("Workflow resumed", approval_id=approval.id, next_step=state.next_step_index)
        return await self._run_steps(document_id, workflow)

    async def settle_execution(self, document_id: str) -> WorkflowRunResult:
        """
        Apply the rejection policy of the paused step for a REJECTED or
        EXPIRED approval.  A PENDING approval past its deadline is expired
        first; an APPROVED one is resumed instead.
        """
        log = self.logger.bind(document_id=document_id)
        state = await self._current_state(document_id)
        if state is None or state.status != ExecutionStatus.PAUSED_FOR_APPROVAL:
            log.info("Execution not paused, nothing to settle", status=state.status if state else None)
            return WorkflowRunResult.from_state(document_id, state, noop=True)

        approval = await self._pending_approval(state)
        if approval is None:
            log.error("Paused execution references a missing approval", approval_id=state.pending_approval_id)
            return WorkflowRunResult.from_state(document_id, state, noop=True)

        if approval.status == ApprovalStatus.PENDING and approval.is_overdue(self.clock()):
            gate = self.services.approval_gate
            expired = await gate.expire(approval) if gate is not None else None
            approval = expired or await self.services.approvals.get(approval.id)

        if approval.status == ApprovalStatus.PENDING:
            log.info("Approval still pending", approval_id=approval.id)
            return WorkflowRunResult.from_state(document_id, state, noop=True)
        if approval.status == ApprovalStatus.APPROVED:
            return await self.resume_execution(document_id)

        workflow = await self._require_workflow(state.workflow_id)
        return await self._settle(document_id, workflow, state, approval)

    async def cancel_execution(self, document_id: str, reason: str = "Cancelled") -> WorkflowRunResult:
        """
        Mark an active execution FAILED.  A running execution stops before
        its next step; the step in flight finishes and is recorded.
        """
        state = await self.services.documents.transition_execution(
            document_id,
            ACTIVE_EXECUTION_STATUSES,
            ExecutionStatus.FAILED,
            error=reason,
            completed_at=self.clock(),
            pending_approval_id=None,
        )
        if state is None:
            current = await self._current_state(document_id)
            return WorkflowRunResult.from_state(document_id, current, noop=True)

        await self.services.documents.update(document_id, status=DocumentStatus.FAILED)
        self.logger.info("Workflow cancelled", document_id=document_id, reason=reason)
        return WorkflowRunResult.from_state(document_id, state)

    # ═══════════════════════════════════════════════════════
    #  Step loop
    # ═══════════════════════════════════════════════════════

    async def _run_steps(self, document_id: str, workflow: WorkflowDefinition) -> WorkflowRunResult:
        steps = workflow.enabled_steps
        log = self.logger.bind(document_id=document_id, workflow_id=workflow.id, total_steps=len(steps))

        while True:
            document = await self._require_document(document_id)
            state = document.workflow_execution
            if state is None or state.status != ExecutionStatus.RUNNING:
                # Cancelled (or otherwise finalized) between steps
                log.info("Execution no longer running, stopping", status=state.status if state else None)
                return WorkflowRunResult.from_state(document_id, state, total_steps=len(steps))

            index = state.next_step_index
            if index >= len(steps):
                return await self._complete(document_id, workflow)

            step = steps[index]
            step_log = log.bind(step_name=step.name, step_type=step.type, step_index=index + 1)
            step_log.info(f"Step {index + 1}/{len(steps)}: {step.name}")

            result = await self._dispatch(document, workflow, step, index, step_log)
            if result.status == StepStatus.PENDING and not result.result.get("approval_id"):
                result = result.model_copy(update={
                    "status": StepStatus.FAILED,
                    "error": "Step returned PENDING without an approval_id",
                })
            state = await self.services.documents.append_step_result(document_id, result)

            if result.status == StepStatus.FAILED:
                step_log.error("Step failed, workflow stopping", error=result.error, duration_ms=result.duration_ms)
                return await self._fail(document_id, f"Step '{step.name}' failed: {result.error}", len(steps))

            if result.status == StepStatus.PENDING:
                outcome = await self._pause(document_id, workflow, result, step_log)
                if outcome is not None:
                    return outcome
                continue

            step_log.info("Step completed", duration_ms=result.duration_ms)

    async def _dispatch(
        self,
        document: Document,
        workflow: WorkflowDefinition,
        step: Step,
        position: int,
        log,
    ) -> StepResult:
        started_at = self.clock()
        try:
            handler = self.resolver.resolve(step.type)
            ctx = StepContext(
                document=document,
                workflow=workflow,
                step=step,
                position=position,
                services=self.services,
                log=log,
            )
            return await handler.execute(ctx)
        except Exception as exc:
            # No auto-retry: the failure is recorded and the run stops
            log.error("Step raised", error=str(exc), error_type=type(exc).__name__)
            completed_at = self.clock()
            return StepResult(
                step_name=step.name,
                step_type=step.type,
                position=position,
                status=StepStatus.FAILED,
                error=str(exc),
                result={"error_type": type(exc).__name__, "traceback": traceback.format_exc(limit=5)},
                started_at=started_at,
                completed_at=completed_at,
                duration_ms=int((completed_at - started_at).total_seconds() * 1000),
            )

    # ═══════════════════════════════════════════════════════
    #  Transitions
    # ═══════════════════════════════════════════════════════

    async def _pause(
        self,
        document_id: str,
        workflow: WorkflowDefinition,
        result: StepResult,
        log,
    ) -> WorkflowRunResult | None:
        """
        Park the run on the approval named in `result`.  Returns None when
        the approval was already approved (the loop should continue).
        """
        approval_id = result.result.get("approval_id")
        paused = await self.services.documents.transition_execution(
            document_id,
            _RUNNING,
            ExecutionStatus.PAUSED_FOR_APPROVAL,
            pending_approval_id=approval_id,
            paused_at=self.clock(),
        )
        if paused is None:
            current = await self._current_state(document_id)
            log.info("Execution stopped before pausing", status=current.status if current else None)
            return WorkflowRunResult.from_state(document_id, current, total_steps=len(workflow.enabled_steps))

        log.info("Workflow paused for approval", approval_id=approval_id)

        # A decision may have landed before the pause was visible
        approval = await self.services.approvals.get(approval_id) if approval_id else None
        if approval is None or approval.status == ApprovalStatus.PENDING:
            return WorkflowRunResult.from_state(document_id, paused, total_steps=len(workflow.enabled_steps))
        if approval.status != ApprovalStatus.APPROVED:
            return await self._settle(document_id, workflow, paused, approval)
        if await self._apply_approval(document_id, approval) is None:
            current = await self._current_state(document_id)
            return WorkflowRunResult.from_state(document_id, current, total_steps=len(workflow.enabled_steps))
        log.info("Approval already granted, continuing", approval_id=approval_id)
        return None

    async def _apply_approval(self, document_id: str, approval: ApprovalRequest) -> WorkflowExecutionState | None:
        return await self.services.documents.transition_execution(
            document_id,
            _PAUSED,
            ExecutionStatus.RUNNING,
            approval=_log_entry(approval),
            pending_approval_id=None,
        )

    async def _settle(
        self,
        document_id: str,
        workflow: WorkflowDefinition,
        state: WorkflowExecutionState,
        approval: ApprovalRequest,
    ) -> WorkflowRunResult:
        policy = _rejection_policy(workflow, approval)
        log = self.logger.bind(document_id=document_id, workflow_id=workflow.id, approval_id=approval.id)
        now = self.clock()

        if policy == RejectionPolicy.COMPLETE_WORKFLOW:
            settled = await self.services.documents.transition_execution(
                document_id,
                _PAUSED,
                ExecutionStatus.COMPLETED,
                approval=_log_entry(approval),
                pending_approval_id=None,
                completed_at=now,
            )
            document_status = DocumentStatus.COMPLETED
        else:
            settled = await self.services.documents.transition_execution(
                document_id,
                _PAUSED,
                ExecutionStatus.FAILED,
                approval=_log_entry(approval),
                pending_approval_id=None,
                completed_at=now,
                error=f"Approval {approval.status.lower()}: {approval.decision_reason or approval.step_name}",
            )
            document_status = DocumentStatus.FAILED

        if settled is None:
            log.info("Execution settled by another worker")
            current = await self._current_state(document_id)
            return WorkflowRunResult.from_state(document_id, current, total_steps=len(workflow.enabled_steps), noop=True)

        await self.services.documents.update(document_id, status=document_status)
        log.info("Workflow settled after approval", approval_status=approval.status, policy=policy, status=settled.status)
        return WorkflowRunResult.from_state(document_id, settled, total_steps=len(workflow.enabled_steps))

    async def _complete(self, document_id: str, workflow: WorkflowDefinition) -> WorkflowRunResult:
        now = self.clock()
        state = await self.services.documents.transition_execution(
            document_id,
            _RUNNING,
            ExecutionStatus.COMPLETED,
            completed_at=now,
        )
        if state is None:
            current = await self._current_state(document_id)
            return WorkflowRunResult.from_state(document_id, current, total_steps=len(workflow.enabled_steps))

        await self.services.documents.update(document_id, status=DocumentStatus.COMPLETED)
        await self.services.workflows.record_completion(workflow.id, now)
        self.logger.info(
            "Workflow completed",
            document_id=document_id,
            workflow_id=workflow.id,
            steps=len(state.step_results),
        )
        return WorkflowRunResult.from_state(document_id, state, total_steps=len(workflow.enabled_steps))

    async def _fail(self, document_id: str, error: str, total_steps: int) -> WorkflowRunResult:
        state = await self.services.documents.transition_execution(
            document_id,
            _RUNNING,
            ExecutionStatus.FAILED,
            error=error,
            completed_at=self.clock(),
        )
        if state is None:
            state = await self._current_state(document_id)
        await self.services.documents.update(document_id, status=DocumentStatus.FAILED)
        return WorkflowRunResult.from_state(document_id, state, total_steps=total_steps)

    # ═══════════════════════════════════════════════════════
    #  Lookups
    # ═══════════════════════════════════════════════════════

    async def _require_document(self, document_id: str) -> Document:
        document = await self.services.documents.get(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found", document_id=document_id)
        return document

    async def _require_workflow(self, workflow_id: str) -> WorkflowDefinition:
        workflow = await self.services.workflows.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(f"Workflow {workflow_id} not found", workflow_id=workflow_id)
        return workflow

    async def _current_state(self, document_id: str) -> WorkflowExecutionState | None:
        return (await self._require_document(document_id)).workflow_execution

    async def _pending_approval(self, state: WorkflowExecutionState) -> ApprovalRequest | None:
        if state.pending_approval_id is None:
            return None
        return await self.services.approvals.get(state.pending_approval_id)


def _log_entry(approval: ApprovalRequest) -> ApprovalLogEntry:
    return ApprovalLogEntry(
        approval_id=approval.id,
        step_name=approval.step_name,
        status=approval.status,
        approver_id=approval.approver_id,
        reason=approval.decision_reason,
        decided_at=approval.decided_at,
    )


def _rejection_policy(workflow: WorkflowDefinition, approval: ApprovalRequest) -> RejectionPolicy:
    step = workflow.find_step(approval.step_name)
    policy = getattr(step.config, "rejection_policy", None) if step else None
    return policy or RejectionPolicy.FAIL_WORKFLOW
