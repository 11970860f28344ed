"""Tests for WorkflowExecutor: ordering, pausing, settling and idempotent entry."""

import asyncio

import pytest

from docflow.core.constants import (
    ApprovalStatus,
    DocumentStatus,
    ExecutionStatus,
    StepStatus,
    StepType,
    WorkflowStatus,
)
from docflow.integrations.registry import IntegrationRegistry
from docflow.pipeline.engine import WorkflowExecutor
from docflow.pipeline.errors import (
    ApprovalExpiredError,
    DocumentNotFoundError,
    IntegrationError,
    WorkflowNotRunnableError,
)
from docflow.pipeline.step import StepHandler
from docflow.pipeline.step_resolver import StepResolver
from docflow.schemas.document import Document
from docflow.schemas.workflow import Step

from conftest import RecordingIntegration, step


def approval_step(position: int = 1, **config) -> Step:
    return step("manager_approval", "require_approval", position, title="Approve document", **config)


class TestStepLoop:

    @pytest.mark.asyncio
    async def test_runs_every_step_and_completes(self, make_harness, sample_invoice_text):
        ledger = RecordingIntegration("ledger", "webhook")
        chat = RecordingIntegration("chat", "slack")
        h = make_harness(integrations=IntegrationRegistry(notification=[chat], store_data=[ledger]))
        doc = await h.add_document(sample_invoice_text, filename="invoice.txt")
        wf = await h.add_workflow(
            step("extract", "extract_text", 0),
            step("analyze", "analyze_content", 1, category="invoice"),
            step("store", "store_data", 2),
            step("notify", "send_notification", 3, message="Processed {filename}"),
        )

        result = await h.executor.execute_workflow(doc.id, wf.id)

        assert result.status == ExecutionStatus.COMPLETED
        assert result.steps_completed == 4
        assert not result.noop

        stored = await h.documents.get(doc.id)
        state = stored.workflow_execution
        assert stored.status == DocumentStatus.COMPLETED
        assert [r.step_name for r in state.step_results] == ["extract", "analyze", "store", "notify"]
        assert [r.position for r in state.step_results] == [0, 1, 2, 3]
        assert "INV-2024-0042" in stored.extracted_text
        assert stored.structured_fields["fields"]["invoice_number"]["value"] == "INV-2024-0042"
        assert state.completed_at is not None

        assert ledger.payloads[0]["fields"]["invoice_number"] == "INV-2024-0042"
        assert chat.payloads[0]["message"] == "Processed invoice.txt"
        assert len(stored.integration_notifications) == 2

        workflow = await h.workflows.get(wf.id)
        assert workflow.execution_count == 1
        assert workflow.last_executed_at is not None

    @pytest.mark.asyncio
    async def test_disabled_steps_are_skipped_and_positions_order_the_run(self, make_harness):
        h = make_harness()
        doc = await h.add_document("Quarterly report body text for ordering checks.")
        wf = await h.add_workflow(
            step("third", "send_notification", 5),
            step("first", "send_notification", 0),
            Step(name="skipped", type="send_notification", position=1, enabled=False),
            step("second", "send_notification", 2),
        )

        result = await h.executor.execute_workflow(doc.id, wf.id)

        assert result.status == ExecutionStatus.COMPLETED
        assert result.total_steps == 3
        assert [r["step_name"] for r in result.step_results] == ["first", "second", "third"]
        # Positions are indexes into the enabled-step order
        assert [r["position"] for r in result.step_results] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_analysis_before_extraction_fails_the_run(self, make_harness):
        h = make_harness()
        doc = await h.add_document("Some text that was never extracted.")
        wf = await h.add_workflow(
            step("analyze", "analyze_content", 0),
            step("notify", "send_notification", 1),
        )

        result = await h.executor.execute_workflow(doc.id, wf.id)

        assert result.status == ExecutionStatus.FAILED
        assert "Text extraction must run before analysis" in result.error
        stored = await h.documents.get(doc.id)
        assert stored.status == DocumentStatus.FAILED
        [failed] = stored.workflow_execution.step_results
        assert failed.status == StepStatus.FAILED
        assert failed.result["error_type"] == "StepPreconditionError"

    @pytest.mark.asyncio
    async def test_missing_blob_fails_the_extract_step(self, make_harness):
        h = make_harness()
        doc = await h.documents.create(Document(filename="ghost.pdf", storage_key="nowhere/ghost.pdf"))
        wf = await h.add_workflow(step("extract", "extract_text", 0))

        result = await h.executor.execute_workflow(doc.id, wf.id)

        assert result.status == ExecutionStatus.FAILED
        assert "Cannot load document bytes" in result.error

    @pytest.mark.asyncio
    async def test_failed_integration_does_not_fail_the_step(self, make_harness):
        broken = RecordingIntegration("broken-hook", "webhook", error=IntegrationError("HTTP 502"))
        healthy = RecordingIntegration("healthy-hook", "webhook")
        h = make_harness(integrations=IntegrationRegistry(store_data=[broken, healthy]))
        doc = await h.add_document("Delivery note for order 1188, shipped to Springfield.")
        wf = await h.add_workflow(
            step("extract", "extract_text", 0),
            step("store", "store_data", 1),
        )

        result = await h.executor.execute_workflow(doc.id, wf.id)

        assert result.status == ExecutionStatus.COMPLETED
        store_result = result.step_results[1]["result"]
        assert store_result["attempted"] == 2
        assert store_result["sent"] == 1
        assert store_result["failed"] == 1
        assert healthy.payloads and broken.payloads

        stored = await h.documents.get(doc.id)
        outcomes = {n["integration"]: n["success"] for n in stored.integration_notifications}
        assert outcomes == {"broken-hook": False, "healthy-hook": True}


class TestEntry:

    @pytest.mark.asyncio
    async def test_second_execute_is_a_noop(self, make_harness):
        h = make_harness()
        doc = await h.add_document("Plain memo text used for the idempotency check.")
        wf = await h.add_workflow(step("extract", "extract_text", 0))

        first = await h.executor.execute_workflow(doc.id, wf.id)
        second = await h.executor.execute_workflow(doc.id, wf.id)

        assert first.status == ExecutionStatus.COMPLETED
        assert second.noop
        assert second.status == ExecutionStatus.COMPLETED
        stored = await h.documents.get(doc.id)
        assert len(stored.workflow_execution.step_results) == 1
        assert (await h.workflows.get(wf.id)).execution_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_executes_run_the_workflow_once(self, make_harness):
        h = make_harness()
        doc = await h.add_document("Concurrent delivery of the same execute message.")
        wf = await h.add_workflow(
            step("extract", "extract_text", 0),
            step("notify", "send_notification", 1),
        )

        results = await asyncio.gather(*(h.executor.execute_workflow(doc.id, wf.id) for _ in range(3)))

        assert sum(1 for r in results if not r.noop) == 1
        stored = await h.documents.get(doc.id)
        assert stored.workflow_execution.status == ExecutionStatus.COMPLETED
        assert len(stored.workflow_execution.step_results) == 2

    @pytest.mark.asyncio
    async def test_document_bound_to_other_workflow_is_left_alone(self, make_harness):
        h = make_harness()
        doc = await h.add_document("Bound document text.")
        first = await h.add_workflow(step("extract", "extract_text", 0), name="First")
        other = await h.add_workflow(step("notify", "send_notification", 0), name="Other")
        await h.executor.execute_workflow(doc.id, first.id)

        result = await h.executor.execute_workflow(doc.id, other.id)

        assert result.noop
        assert result.workflow_id == first.id

    @pytest.mark.asyncio
    async def test_inactive_workflow_is_refused(self, make_harness):
        h = make_harness()
        doc = await h.add_document("Draft workflow target.")
        wf = await h.add_workflow(step("extract", "extract_text", 0), status=WorkflowStatus.DRAFT)

        with pytest.raises(WorkflowNotRunnableError):
            await h.executor.execute_workflow(doc.id, wf.id)
        assert (await h.documents.get(doc.id)).workflow_execution is None

    @pytest.mark.asyncio
    async def test_unknown_document_raises(self, make_harness):
        h = make_harness()
        wf = await h.add_workflow(step("extract", "extract_text", 0))

        with pytest.raises(DocumentNotFoundError):
            await h.executor.execute_workflow("missing", wf.id)


class TestApprovalPause:

    @pytest.mark.asyncio
    async def test_pauses_then_resumes_on_approval(self, make_harness, mock_channel):
        h = make_harness(channel=mock_channel)
        doc = await h.add_document("Purchase order for 40 chairs, please approve.")
        wf = await h.add_workflow(
            step("extract", "extract_text", 0),
            approval_step(1),
            step("notify", "send_notification", 2),
        )

        paused = await h.executor.execute_workflow(doc.id, wf.id)

        assert paused.status == ExecutionStatus.PAUSED_FOR_APPROVAL
        assert paused.pending_approval_id is not None
        stored = await h.documents.get(doc.id)
        assert stored.status == DocumentStatus.PROCESSING
        assert stored.workflow_execution.step_results[-1].status == StepStatus.PENDING
        mock_channel.post_message.assert_awaited_once()

        decided = await h.gate.process_decision(paused.pending_approval_id, "approve", "u-7")

        assert decided.status == ApprovalStatus.APPROVED
        stored = await h.documents.get(doc.id)
        state = stored.workflow_execution
        assert state.status == ExecutionStatus.COMPLETED
        assert stored.status == DocumentStatus.COMPLETED
        assert state.pending_approval_id is None
        assert [r.step_name for r in state.step_results] == ["extract", "manager_approval", "notify"]
        assert state.approvals[0].status == ApprovalStatus.APPROVED
        assert state.approvals[0].approver_id == "u-7"
        mock_channel.update_message.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_rejection_fails_the_run_by_default(self, make_harness):
        h = make_harness()
        doc = await h.add_document("Expense claim for a conference trip.")
        wf = await h.add_workflow(
            step("extract", "extract_text", 0),
            approval_step(1),
            step("notify", "send_notification", 2),
        )
        paused = await h.executor.execute_workflow(doc.id, wf.id)

        await h.gate.process_decision(paused.pending_approval_id, "reject", "u-9", reason="Over budget")

        stored = await h.documents.get(doc.id)
        state = stored.workflow_execution
        assert state.status == ExecutionStatus.FAILED
        assert stored.status == DocumentStatus.FAILED
        assert state.error == "Approval rejected: Over budget"
        assert len(state.step_results) == 2
        assert (await h.workflows.get(wf.id)).execution_count == 0

    @pytest.mark.asyncio
    async def test_rejection_can_complete_the_run(self, make_harness):
        h = make_harness()
        doc = await h.add_document("Optional review of a signup form.")
        wf = await h.add_workflow(
            step("extract", "extract_text", 0),
            approval_step(1, rejection_policy="complete_workflow"),
            step("notify", "send_notification", 2),
        )
        paused = await h.executor.execute_workflow(doc.id, wf.id)

        await h.gate.process_decision(paused.pending_approval_id, "reject", "u-9")

        stored = await h.documents.get(doc.id)
        state = stored.workflow_execution
        assert state.status == ExecutionStatus.COMPLETED
        assert stored.status == DocumentStatus.COMPLETED
        # The steps after the approval never ran
        assert [r.step_name for r in state.step_results] == ["extract", "manager_approval"]
        assert state.approvals[0].status == ApprovalStatus.REJECTED
        assert state.approvals[0].reason == "rejected by u-9"

    @pytest.mark.asyncio
    async def test_expired_approval_settles_the_run(self, make_harness, clock):
        h = make_harness(use_clock=True)
        doc = await h.add_document("Vendor onboarding packet awaiting review.")
        wf = await h.add_workflow(
            step("extract", "extract_text", 0),
            approval_step(1, expires_in_hours=1),
        )
        paused = await h.executor.execute_workflow(doc.id, wf.id)

        clock.advance(hours=2)
        result = await h.executor.settle_execution(doc.id)

        assert result.status == ExecutionStatus.FAILED
        assert result.error.startswith("Approval expired")
        approval = await h.approvals.get(paused.pending_approval_id)
        assert approval.status == ApprovalStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_settle_before_deadline_keeps_waiting(self, make_harness, clock):
        h = make_harness(use_clock=True)
        doc = await h.add_document("Lease renewal awaiting signature.")
        wf = await h.add_workflow(approval_step(0, expires_in_hours=4))
        await h.executor.execute_workflow(doc.id, wf.id)

        clock.advance(hours=1)
        result = await h.executor.settle_execution(doc.id)

        assert result.noop
        assert result.status == ExecutionStatus.PAUSED_FOR_APPROVAL

    @pytest.mark.asyncio
    async def test_resume_while_pending_is_a_noop(self, make_harness):
        h = make_harness()
        doc = await h.add_document("Waiting for a decision.")
        wf = await h.add_workflow(approval_step(0), step("notify", "send_notification", 1))
        await h.executor.execute_workflow(doc.id, wf.id)

        result = await h.executor.resume_execution(doc.id)

        assert result.noop
        assert result.status == ExecutionStatus.PAUSED_FOR_APPROVAL
        assert len(result.step_results) == 1

    @pytest.mark.asyncio
    async def test_repeated_resume_runs_remaining_steps_once(self, make_harness):
        notifier = RecordingIntegration("chat", "slack")
        h = make_harness(integrations=IntegrationRegistry(notification=[notifier]))
        doc = await h.add_document("Approve then deliver exactly once.")
        wf = await h.add_workflow(approval_step(0), step("notify", "send_notification", 1))
        paused = await h.executor.execute_workflow(doc.id, wf.id)

        await h.gate.process_decision(paused.pending_approval_id, "approve", "u-1")
        again = await h.executor.resume_execution(doc.id)

        assert again.noop
        assert len(notifier.payloads) == 1

    @pytest.mark.asyncio
    async def test_cancelled_run_is_not_revived_by_a_late_approval(self, make_harness):
        h = make_harness()
        doc = await h.add_document("Cancelled while waiting.")
        wf = await h.add_workflow(approval_step(0), step("notify", "send_notification", 1))
        paused = await h.executor.execute_workflow(doc.id, wf.id)

        cancelled = await h.executor.cancel_execution(doc.id, reason="Withdrawn by uploader")
        await h.gate.process_decision(paused.pending_approval_id, "approve", "u-1")

        assert cancelled.status == ExecutionStatus.FAILED
        stored = await h.documents.get(doc.id)
        state = stored.workflow_execution
        assert state.status == ExecutionStatus.FAILED
        assert state.error == "Withdrawn by uploader"
        assert state.pending_approval_id is None
        assert len(state.step_results) == 1
        assert stored.status == DocumentStatus.FAILED

    @pytest.mark.asyncio
    async def test_cancel_of_finished_run_is_a_noop(self, make_harness):
        h = make_harness()
        doc = await h.add_document("Already finished document text.")
        wf = await h.add_workflow(step("extract", "extract_text", 0))
        await h.executor.execute_workflow(doc.id, wf.id)

        result = await h.executor.cancel_execution(doc.id)

        assert result.noop
        assert result.status == ExecutionStatus.COMPLETED


class _ApprovalLessHandler(StepHandler):
    step_type = StepType.REQUIRE_APPROVAL
    description = "Pauses without creating an approval"

    async def execute(self, ctx):
        return self._pending(ctx, self._now())


class TestPauseInvariants:

    @pytest.mark.asyncio
    async def test_late_decision_settles_the_paused_run(self, make_harness, clock):
        h = make_harness(use_clock=True)
        doc = await h.add_document("Purchase order for two replacement laptops.")
        wf = await h.add_workflow(
            step("extract", "extract_text", 0),
            approval_step(1, expires_in_hours=1),
            step("notify", "send_notification", 2),
        )
        paused = await h.executor.execute_workflow(doc.id, wf.id)

        clock.advance(hours=2)
        with pytest.raises(ApprovalExpiredError):
            await h.gate.process_decision(paused.pending_approval_id, "approve", "u-3")

        stored = await h.documents.get(doc.id)
        state = stored.workflow_execution
        assert state.status == ExecutionStatus.FAILED
        assert state.pending_approval_id is None
        assert state.error.startswith("Approval expired")
        assert stored.status == DocumentStatus.FAILED
        assert [r.step_name for r in state.step_results] == ["extract", "manager_approval"]
        assert (await h.approvals.get(paused.pending_approval_id)).status == ApprovalStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_pending_step_without_approval_fails_the_run(self, make_harness):
        h = make_harness()
        executor = WorkflowExecutor(h.services, StepResolver({StepType.REQUIRE_APPROVAL: _ApprovalLessHandler}))
        doc = await h.add_document("Travel request for a site visit.")
        wf = await h.add_workflow(approval_step(0))

        result = await executor.execute_workflow(doc.id, wf.id)

        assert result.status == ExecutionStatus.FAILED
        assert "without an approval_id" in result.error
        state = (await h.documents.get(doc.id)).workflow_execution
        assert state.pending_approval_id is None
        assert state.step_results[-1].status == StepStatus.FAILED
