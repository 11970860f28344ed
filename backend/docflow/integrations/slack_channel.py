"""
Slack Web API notification channel.

Posts approval requests (Block Kit, with approve/reject buttons) and
rewrites them in place once decided.  Failures are logged and reported
as None / False; they never propagate into the approval gate.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx

from docflow.core.constants import ApprovalStatus
from docflow.core.logging import get_logger
from docflow.pipeline.errors import NotificationError
from docflow.schemas.approval import ApprovalRequest, NotificationRef

logger = get_logger(__name__)

_STATUS_ICONS = {
    ApprovalStatus.PENDING: ":hourglass_flowing_sand:",
    ApprovalStatus.APPROVED: ":white_check_mark:",
    ApprovalStatus.REJECTED: ":x:",
    ApprovalStatus.EXPIRED: ":alarm_clock:",
}


class NotificationChannel(Protocol):
    async def post_message(self, channel: str, content: dict[str, Any]) -> NotificationRef | None: ...

    async def update_message(self, ref: NotificationRef, content: dict[str, Any]) -> bool: ...


class SlackNotificationChannel:
    """`chat.postMessage` / `chat.update` over a shared httpx client."""

    def __init__(
        self,
        token: str,
        *,
        api_url: str = "https://slack.com/api",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/") + "/",
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def post_message(self, channel: str, content: dict[str, Any]) -> NotificationRef | None:
        try:
            data = await self._call("chat.postMessage", {"channel": channel, **content})
        except NotificationError as exc:
            logger.warning("Slack post failed", channel=channel, error=str(exc))
            return None
        if not data.get("ts"):
            logger.warning("Slack post returned no message ts", channel=channel)
            return None
        return NotificationRef(channel=str(data.get("channel") or channel), ts=str(data["ts"]))

    async def update_message(self, ref: NotificationRef, content: dict[str, Any]) -> bool:
        try:
            await self._call("chat.update", {"channel": ref.channel, "ts": ref.ts, **content})
        except NotificationError as exc:
            logger.warning("Slack update failed", channel=ref.channel, ts=ref.ts, error=str(exc))
            return False
        return True

    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.post(method, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise NotificationError(f"Slack {method} request failed: {exc}") from exc
        except ValueError as exc:
            raise NotificationError(f"Slack {method} returned non-JSON body") from exc

        # Slack reports most failures as HTTP 200 with ok=false
        if not data.get("ok"):
            raise NotificationError(
                f"Slack {method} error: {data.get('error', 'unknown_error')}",
                details={"response": data},
            )
        return data


# ── Message builders ─────────────────────────────────────

def approval_request_message(approval: ApprovalRequest, *, filename: str | None = None) -> dict[str, Any]:
    """Block Kit message asking for a decision."""
    fields = [
        {"type": "mrkdwn", "text": f"*Document:*\n{filename or approval.document_id}"},
        {"type": "mrkdwn", "text": f"*Step:*\n{approval.step_name}"},
    ]
    if approval.requester_id:
        fields.append({"type": "mrkdwn", "text": f"*Requested by:*\n{approval.requester_id}"})
    if approval.expires_at:
        fields.append({"type": "mrkdwn", "text": f"*Expires:*\n{approval.expires_at:%Y-%m-%d %H:%M} UTC"})

    blocks: list[dict[str, Any]] = [
        {"type": "header", "text": {"type": "plain_text", "text": approval.title[:150]}},
    ]
    if approval.description:
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": approval.description}})
    blocks.append({"type": "section", "fields": fields})
    blocks.append({
        "type": "actions",
        "block_id": f"approval:{approval.id}",
        "elements": [
            {
                "type": "button",
                "style": "primary",
                "action_id": "approve",
                "text": {"type": "plain_text", "text": "Approve"},
                "value": approval.id,
            },
            {
                "type": "button",
                "style": "danger",
                "action_id": "reject",
                "text": {"type": "plain_text", "text": "Reject"},
                "value": approval.id,
            },
        ],
    })
    return {"text": f"Approval required: {approval.title}", "blocks": blocks}


def approval_status_message(approval: ApprovalRequest) -> dict[str, Any]:
    """Replacement message once the approval is final (no buttons)."""
    icon = _STATUS_ICONS.get(approval.status, "")
    summary = f"{icon} *{approval.title}* is {approval.status.lower()}"
    if approval.approver_id:
        summary += f" by {approval.approver_id}"
    blocks: list[dict[str, Any]] = [{"type": "section", "text": {"type": "mrkdwn", "text": summary}}]
    if approval.decision_reason:
        blocks.append({
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": f"Reason: {approval.decision_reason}"}],
        })
    return {"text": f"{approval.title}: {approval.status}", "blocks": blocks}
