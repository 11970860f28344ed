"""Tests for the Slack notification channel and the outbound integrations."""

import json

import httpx
import pytest

from docflow.core.constants import ApprovalStatus
from docflow.integrations.slack_channel import (
    SlackNotificationChannel,
    approval_request_message,
    approval_status_message,
)
from docflow.integrations.webhook import WebhookIntegration
from docflow.pipeline.errors import IntegrationError
from docflow.schemas.approval import ApprovalRequest, NotificationRef


def channel_for(handler) -> SlackNotificationChannel:
    return SlackNotificationChannel("xoxb-test", api_url="https://slack.test/api", transport=httpx.MockTransport(handler))


@pytest.fixture
def approval() -> ApprovalRequest:
    return ApprovalRequest(
        document_id="doc-1",
        workflow_id="wf-1",
        step_name="finance_approval",
        title="Approve invoice",
        description="Check the amount.",
        requester_id="ops-bot",
    )


class TestSlackNotificationChannel:

    @pytest.mark.asyncio
    async def test_post_returns_message_ref(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"ok": True, "channel": "C999", "ts": "1717243200.000200"})

        channel = channel_for(handler)
        ref = await channel.post_message("#approvals", {"text": "hello"})
        await channel.aclose()

        assert ref == NotificationRef(channel="C999", ts="1717243200.000200")
        assert seen["path"] == "/api/chat.postMessage"
        assert seen["body"] == {"channel": "#approvals", "text": "hello"}
        assert seen["auth"] == "Bearer xoxb-test"

    @pytest.mark.asyncio
    async def test_slack_error_reported_as_none(self):
        channel = channel_for(lambda request: httpx.Response(200, json={"ok": False, "error": "channel_not_found"}))

        assert await channel.post_message("#missing", {"text": "hi"}) is None
        await channel.aclose()

    @pytest.mark.asyncio
    async def test_http_error_reported_as_none(self):
        channel = channel_for(lambda request: httpx.Response(500, text="oops"))

        assert await channel.post_message("#approvals", {"text": "hi"}) is None
        await channel.aclose()

    @pytest.mark.asyncio
    async def test_ok_reply_without_ts_reported_as_none(self):
        channel = channel_for(lambda request: httpx.Response(200, json={"ok": True, "channel": "C999"}))

        assert await channel.post_message("#approvals", {"text": "hi"}) is None
        await channel.aclose()

    @pytest.mark.asyncio
    async def test_update_targets_the_original_message(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True})

        channel = channel_for(handler)
        updated = await channel.update_message(NotificationRef(channel="C1", ts="1.2"), {"text": "done"})
        await channel.aclose()

        assert updated is True
        assert seen["path"] == "/api/chat.update"
        assert seen["body"] == {"channel": "C1", "ts": "1.2", "text": "done"}

    @pytest.mark.asyncio
    async def test_update_failure_returns_false(self):
        channel = channel_for(lambda request: httpx.Response(200, json={"ok": False, "error": "message_not_found"}))

        assert await channel.update_message(NotificationRef(channel="C1", ts="1.2"), {"text": "x"}) is False
        await channel.aclose()


class TestMessages:

    def test_request_message_has_buttons_carrying_the_approval_id(self, approval):
        message = approval_request_message(approval, filename="invoice.pdf")

        actions = message["blocks"][-1]
        assert actions["type"] == "actions"
        assert {e["value"] for e in actions["elements"]} == {approval.id}
        assert "invoice.pdf" in json.dumps(message)
        assert "ops-bot" in json.dumps(message)

    def test_status_message_has_no_buttons(self, approval):
        decided = approval.model_copy(update={
            "status": ApprovalStatus.REJECTED,
            "approver_id": "u-42",
            "decision_reason": "Duplicate",
        })

        message = approval_status_message(decided)

        assert all(b["type"] != "actions" for b in message["blocks"])
        assert "rejected by u-42" in message["blocks"][0]["text"]["text"]
        assert "Reason: Duplicate" in json.dumps(message)


class TestWebhookIntegration:

    @pytest.mark.asyncio
    async def test_posts_json_payload(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(202)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            hook = WebhookIntegration("ledger", "https://hooks.test/ledger", client=client)
            response = await hook.send({"event": "document.data", "document_id": "doc-1"})

        assert response == {"status_code": 202}
        assert bodies == [{"event": "document.data", "document_id": "doc-1"}]

    @pytest.mark.asyncio
    async def test_error_status_raises_integration_error(self):
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(502, text="bad gateway"))) as client:
            hook = WebhookIntegration("ledger", "https://hooks.test/ledger", client=client)

            with pytest.raises(IntegrationError) as exc_info:
                await hook.send({"event": "document.data"})

        assert exc_info.value.integration == "ledger"
