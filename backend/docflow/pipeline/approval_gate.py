"""
ApprovalGate — bridges a paused execution to an external human decision.

    approval = await gate.create_approval(CreateApprovalRequest(...))
    ...
    await gate.process_decision(approval.id, "approve", approver_id="u-42")

PENDING is the only mutable state.  Every finalization goes through the
store's compare-and-set, so two racing decisions (or a decision racing
the expiry sweep) produce exactly one winner; the loser sees
ApprovalNotPendingError.

Notification is best-effort throughout: a failed Slack post never fails
creation or a decision.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Protocol

from docflow.core.constants import ApprovalDecision, ApprovalStatus
from docflow.core.logging import get_logger
from docflow.integrations.slack_channel import (
    NotificationChannel,
    approval_request_message,
    approval_status_message,
)
from docflow.pipeline.errors import (
    ApprovalError,
    ApprovalExpiredError,
    ApprovalNotFoundError,
    ApprovalNotPendingError,
)
from docflow.repositories.base import ApprovalStore
from docflow.schemas.approval import ApprovalRequest, CreateApprovalRequest
from docflow.schemas.common import utcnow

logger = get_logger(__name__)

_DECISION_STATUS = {
    ApprovalDecision.APPROVE: ApprovalStatus.APPROVED,
    ApprovalDecision.REJECT: ApprovalStatus.REJECTED,
}


class ResumeHandler(Protocol):
    """What the gate needs from the executor once a decision lands."""

    async def resume_execution(self, document_id: str): ...

    async def settle_execution(self, document_id: str): ...


class ApprovalGate:
    def __init__(
        self,
        approvals: ApprovalStore,
        *,
        channel: NotificationChannel | None = None,
        approval_channel: str = "#approvals",
        default_expiry_hours: float = 24,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.approvals = approvals
        self.channel = channel
        self.approval_channel = approval_channel
        self.default_expiry_hours = default_expiry_hours
        self.clock = clock
        self._executor: ResumeHandler | None = None

    def attach(self, executor: ResumeHandler) -> None:
        self._executor = executor

    # ── Create ───────────────────────────────────────────

    async def create_approval(self, request: CreateApprovalRequest) -> ApprovalRequest:
        now = self.clock()
        hours = request.expires_in_hours or self.default_expiry_hours
        approval = ApprovalRequest(
            document_id=request.document_id,
            workflow_id=request.workflow_id,
            step_name=request.step_name,
            title=request.title,
            description=request.description,
            requester_id=request.requester_id,
            created_at=now,
            expires_at=now + timedelta(hours=hours),
            metadata=request.metadata,
        )
        await self.approvals.create(approval)

        log = logger.bind(approval_id=approval.id, document_id=approval.document_id, step_name=approval.step_name)
        log.info("Approval created", expires_at=approval.expires_at.isoformat())

        if self.channel is not None:
            content = approval_request_message(approval, filename=request.metadata.get("filename"))
            try:
                ref = await self.channel.post_message(request.channel or self.approval_channel, content)
            except Exception as exc:
                log.exception("Approval notification failed (non-fatal)", error=str(exc))
                ref = None
            if ref is not None:
                await self.approvals.set_notification_ref(approval.id, ref)
                approval = approval.model_copy(update={"notification_ref": ref})
            else:
                log.warning("Approval notification not delivered")

        return approval

    # ── Decide ───────────────────────────────────────────

    async def process_decision(
        self,
        approval_id: str,
        decision: ApprovalDecision | str,
        approver_id: str,
        reason: str | None = None,
    ) -> ApprovalRequest:
        """
        Finalize a PENDING approval.

        Raises:
            ApprovalNotFoundError: unknown id.
            ApprovalNotPendingError: already final (or lost a race).
            ApprovalExpiredError: the deadline passed; the approval is now EXPIRED.
        """
        try:
            decision = ApprovalDecision(decision)
        except ValueError:
            raise ApprovalError(f"Unknown decision '{decision}'", approval_id=approval_id) from None

        approval = await self.approvals.get(approval_id)
        if approval is None:
            raise ApprovalNotFoundError(f"Approval {approval_id} not found", approval_id=approval_id)
        if not approval.is_pending:
            raise ApprovalNotPendingError(
                f"Approval {approval_id} is already {approval.status}",
                approval_id=approval_id,
                status=approval.status,
                document_id=approval.document_id,
            )

        now = self.clock()
        if approval.is_overdue(now):
            expired = await self.expire(approval)
            if expired is not None:
                await self._signal_executor(expired)
            raise ApprovalExpiredError(
                f"Approval {approval_id} expired at {approval.expires_at.isoformat()}",
                approval_id=approval_id,
                document_id=approval.document_id,
                details={"status": expired.status if expired else None},
            )

        status = _DECISION_STATUS[decision]
        decided = await self.approvals.transition(
            approval_id,
            status,
            approver_id=approver_id,
            decision_reason=reason or f"{status.lower()} by {approver_id}",
            decided_at=now,
        )
        if decided is None:
            current = await self.approvals.get(approval_id)
            raise ApprovalNotPendingError(
                f"Approval {approval_id} was finalized concurrently",
                approval_id=approval_id,
                status=current.status if current else None,
                document_id=approval.document_id,
            )

        log = logger.bind(approval_id=approval_id, document_id=decided.document_id)
        log.info("Approval decided", status=decided.status, approver_id=approver_id)

        await self._update_notification(decided)
        await self._signal_executor(decided)
        return decided

    # ── Expiry ───────────────────────────────────────────

    async def expire(self, approval: ApprovalRequest) -> ApprovalRequest | None:
        """Move one PENDING approval to EXPIRED.  None if it was already final."""
        expired = await self.approvals.transition(
            approval.id,
            ApprovalStatus.EXPIRED,
            decided_at=self.clock(),
            decision_reason="Approval expired",
        )
        if expired is None:
            return None
        logger.info("Approval expired", approval_id=approval.id, document_id=approval.document_id)
        await self._update_notification(expired)
        return expired

    async def expire_old_approvals(self) -> list[ApprovalRequest]:
        """
        Expire every PENDING approval past its deadline.

        Does not touch the owning executions; callers settle them
        (see tasks.approval_tasks.expire_overdue_approvals).
        """
        expired: list[ApprovalRequest] = []
        for approval in await self.approvals.list_overdue(self.clock()):
            result = await self.expire(approval)
            if result is not None:
                expired.append(result)
        if expired:
            logger.info("Approval sweep finished", expired=len(expired))
        return expired

    # ── Reads ────────────────────────────────────────────

    async def get_approval(self, approval_id: str) -> ApprovalRequest | None:
        return await self.approvals.get(approval_id)

    async def list_pending(self) -> list[ApprovalRequest]:
        return await self.approvals.list_pending()

    async def list_for_document(self, document_id: str) -> list[ApprovalRequest]:
        return await self.approvals.list_for_document(document_id)

    # ── Internals ────────────────────────────────────────

    async def _update_notification(self, approval: ApprovalRequest) -> None:
        if self.channel is None or approval.notification_ref is None:
            return
        try:
            updated = await self.channel.update_message(approval.notification_ref, approval_status_message(approval))
        except Exception as exc:
            logger.exception("Approval notification update failed (non-fatal)", approval_id=approval.id, error=str(exc))
            return
        if not updated:
            logger.warning("Approval notification not updated", approval_id=approval.id)

    async def _signal_executor(self, approval: ApprovalRequest) -> None:
        if self._executor is None:
            logger.warning("No executor attached, decision recorded only", approval_id=approval.id)
            return
        try:
            if approval.status == ApprovalStatus.APPROVED:
                await self._executor.resume_execution(approval.document_id)
            else:
                await self._executor.settle_execution(approval.document_id)
        except Exception as exc:
            # The decision is final either way; the run can be resumed later
            logger.exception(
                "Executor signal failed (non-fatal)",
                approval_id=approval.id,
                document_id=approval.document_id,
                error=str(exc),
            )
