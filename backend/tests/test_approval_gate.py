"""Tests for ApprovalGate: creation, decisions, expiry and notification handling."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from docflow.core.constants import ApprovalStatus
from docflow.pipeline.approval_gate import ApprovalGate
from docflow.pipeline.errors import (
    ApprovalError,
    ApprovalExpiredError,
    ApprovalNotFoundError,
    ApprovalNotPendingError,
)
from docflow.repositories.memory import InMemoryApprovalStore
from docflow.schemas.approval import CreateApprovalRequest


def request(**overrides) -> CreateApprovalRequest:
    data = {
        "document_id": "doc-1",
        "workflow_id": "wf-1",
        "step_name": "finance_approval",
        "title": "Approve invoice",
        "metadata": {"filename": "invoice.pdf"},
    }
    data.update(overrides)
    return CreateApprovalRequest(**data)


@pytest.fixture
def store() -> InMemoryApprovalStore:
    return InMemoryApprovalStore()


@pytest.fixture
def executor() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def gate(store, mock_channel, clock, executor) -> ApprovalGate:
    gate = ApprovalGate(store, channel=mock_channel, default_expiry_hours=24, clock=clock)
    gate.attach(executor)
    return gate


class TestCreateApproval:

    @pytest.mark.asyncio
    async def test_uses_default_expiry_and_posts_notification(self, gate, store, mock_channel, clock):
        approval = await gate.create_approval(request())

        assert approval.status == ApprovalStatus.PENDING
        assert approval.expires_at == clock.now + timedelta(hours=24)
        assert approval.notification_ref.ts == "1717243200.000100"

        channel, content = mock_channel.post_message.await_args.args
        assert channel == "#approvals"
        actions = [b for b in content["blocks"] if b["type"] == "actions"][0]
        assert actions["block_id"] == f"approval:{approval.id}"
        assert {e["action_id"] for e in actions["elements"]} == {"approve", "reject"}

        stored = await store.get(approval.id)
        assert stored.notification_ref is not None

    @pytest.mark.asyncio
    async def test_explicit_expiry_and_channel(self, gate, mock_channel, clock):
        approval = await gate.create_approval(request(expires_in_hours=2, channel="#finance"))

        assert approval.expires_at == clock.now + timedelta(hours=2)
        assert mock_channel.post_message.await_args.args[0] == "#finance"

    @pytest.mark.asyncio
    async def test_failed_notification_does_not_block_creation(self, gate, store, mock_channel):
        mock_channel.post_message.return_value = None

        approval = await gate.create_approval(request())

        assert approval.notification_ref is None
        assert (await store.get(approval.id)).status == ApprovalStatus.PENDING

    @pytest.mark.asyncio
    async def test_raising_channel_does_not_block_creation(self, gate, store, mock_channel):
        mock_channel.post_message.side_effect = ConnectionError("slack unreachable")

        approval = await gate.create_approval(request())

        assert approval.notification_ref is None
        assert (await store.get(approval.id)).status == ApprovalStatus.PENDING

    @pytest.mark.asyncio
    async def test_works_without_a_channel(self, store, clock):
        gate = ApprovalGate(store, clock=clock)

        approval = await gate.create_approval(request())

        assert await gate.list_pending() == [approval]
        assert await gate.list_for_document("doc-1") == [approval]


class TestProcessDecision:

    @pytest.mark.asyncio
    async def test_approve_resumes_the_executor(self, gate, mock_channel, executor, clock):
        approval = await gate.create_approval(request())

        decided = await gate.process_decision(approval.id, "approve", "u-42")

        assert decided.status == ApprovalStatus.APPROVED
        assert decided.approver_id == "u-42"
        assert decided.decision_reason == "approved by u-42"
        assert decided.decided_at == clock.now
        executor.resume_execution.assert_awaited_once_with("doc-1")
        executor.settle_execution.assert_not_awaited()

        ref, content = mock_channel.update_message.await_args.args
        assert ref.ts == "1717243200.000100"
        assert "approved" in content["text"].lower()

    @pytest.mark.asyncio
    async def test_reject_settles_the_executor(self, gate, executor):
        approval = await gate.create_approval(request())

        decided = await gate.process_decision(approval.id, "reject", "u-42", reason="Duplicate invoice")

        assert decided.status == ApprovalStatus.REJECTED
        assert decided.decision_reason == "Duplicate invoice"
        executor.settle_execution.assert_awaited_once_with("doc-1")
        executor.resume_execution.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_decision_on_final_approval_is_refused(self, gate, executor):
        approval = await gate.create_approval(request())
        await gate.process_decision(approval.id, "approve", "u-1")

        with pytest.raises(ApprovalNotPendingError) as exc_info:
            await gate.process_decision(approval.id, "reject", "u-2")

        assert exc_info.value.status == ApprovalStatus.APPROVED
        assert executor.resume_execution.await_count == 1

    @pytest.mark.asyncio
    async def test_racing_decisions_have_one_winner(self, gate, store):
        approval = await gate.create_approval(request())

        outcomes = await asyncio.gather(
            gate.process_decision(approval.id, "approve", "u-1"),
            gate.process_decision(approval.id, "reject", "u-2"),
            return_exceptions=True,
        )

        winners = [o for o in outcomes if not isinstance(o, Exception)]
        losers = [o for o in outcomes if isinstance(o, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], ApprovalNotPendingError)
        assert (await store.get(approval.id)).status == winners[0].status

    @pytest.mark.asyncio
    async def test_late_decision_expires_the_approval(self, gate, store, executor, clock):
        approval = await gate.create_approval(request(expires_in_hours=1))
        clock.advance(hours=1, minutes=1)

        with pytest.raises(ApprovalExpiredError):
            await gate.process_decision(approval.id, "approve", "u-1")

        stored = await store.get(approval.id)
        assert stored.status == ApprovalStatus.EXPIRED
        assert stored.approver_id is None
        executor.resume_execution.assert_not_awaited()
        executor.settle_execution.assert_awaited_once_with("doc-1")

    @pytest.mark.asyncio
    async def test_unknown_approval(self, gate):
        with pytest.raises(ApprovalNotFoundError):
            await gate.process_decision("nope", "approve", "u-1")

    @pytest.mark.asyncio
    async def test_unknown_decision(self, gate):
        approval = await gate.create_approval(request())

        with pytest.raises(ApprovalError, match="Unknown decision"):
            await gate.process_decision(approval.id, "maybe", "u-1")

    @pytest.mark.asyncio
    async def test_executor_failure_does_not_undo_the_decision(self, gate, store, executor):
        executor.resume_execution.side_effect = RuntimeError("worker gone")
        approval = await gate.create_approval(request())

        decided = await gate.process_decision(approval.id, "approve", "u-1")

        assert decided.status == ApprovalStatus.APPROVED
        assert (await store.get(approval.id)).status == ApprovalStatus.APPROVED

    @pytest.mark.asyncio
    async def test_notification_update_failure_is_not_fatal(self, gate, mock_channel):
        mock_channel.update_message.return_value = False
        approval = await gate.create_approval(request())

        decided = await gate.process_decision(approval.id, "reject", "u-1")

        assert decided.status == ApprovalStatus.REJECTED

    @pytest.mark.asyncio
    async def test_raising_update_does_not_undo_the_decision(self, gate, store, mock_channel, executor):
        mock_channel.update_message.side_effect = RuntimeError("socket closed")
        approval = await gate.create_approval(request())

        decided = await gate.process_decision(approval.id, "approve", "u-1")

        assert decided.status == ApprovalStatus.APPROVED
        assert (await store.get(approval.id)).status == ApprovalStatus.APPROVED
        executor.resume_execution.assert_awaited_once_with("doc-1")


class TestExpiry:

    @pytest.mark.asyncio
    async def test_sweep_expires_only_overdue_approvals(self, gate, store, mock_channel, clock):
        short = await gate.create_approval(request(expires_in_hours=1))
        long = await gate.create_approval(request(document_id="doc-2"))
        clock.advance(hours=2)

        expired = await gate.expire_old_approvals()

        assert [a.id for a in expired] == [short.id]
        assert (await store.get(short.id)).status == ApprovalStatus.EXPIRED
        assert (await store.get(long.id)).status == ApprovalStatus.PENDING
        assert mock_channel.update_message.await_count == 1

    @pytest.mark.asyncio
    async def test_sweep_skips_decided_approvals(self, gate, clock):
        approval = await gate.create_approval(request(expires_in_hours=1))
        await gate.process_decision(approval.id, "approve", "u-1")
        clock.advance(hours=3)

        assert await gate.expire_old_approvals() == []

    @pytest.mark.asyncio
    async def test_expire_is_a_noop_on_final_approvals(self, gate):
        approval = await gate.create_approval(request())
        await gate.process_decision(approval.id, "reject", "u-1")

        assert await gate.expire(approval) is None
