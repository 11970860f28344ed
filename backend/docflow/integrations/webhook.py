"""
Outbound integrations used by the send_notification and store_data steps.

Every integration exposes `send(payload) -> dict` and raises
IntegrationError on failure; the calling step aggregates results.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from docflow.core.constants import IntegrationType
from docflow.core.logging import get_logger
from docflow.integrations.slack_channel import NotificationChannel
from docflow.pipeline.errors import IntegrationError

logger = get_logger(__name__)


class WebhookIntegration:
    """JSON POST to a fixed URL."""

    type = IntegrationType.WEBHOOK

    def __init__(self, name: str, url: str, *, client: httpx.AsyncClient) -> None:
        self.name = name
        self.url = url
        self._client = client

    async def send(self, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.post(self.url, json=payload)
        except httpx.HTTPError as exc:
            raise IntegrationError(f"Webhook {self.name} request failed: {exc}", integration=self.name) from exc
        if response.status_code >= 400:
            raise IntegrationError(
                f"Webhook {self.name} returned {response.status_code}",
                integration=self.name,
                details={"body": response.text[:200]},
            )
        logger.debug("Webhook delivered", integration=self.name, status_code=response.status_code)
        return {"status_code": response.status_code}


class SlackIntegration:
    """Posts a plain message to a Slack channel through a NotificationChannel."""

    type = IntegrationType.SLACK

    def __init__(self, name: str, channel: NotificationChannel, *, default_channel: str) -> None:
        self.name = name
        self._channel = channel
        self.default_channel = default_channel

    async def send(self, payload: dict[str, Any]) -> dict[str, Any]:
        target = payload.get("channel") or self.default_channel
        ref = await self._channel.post_message(target, {"text": _slack_text(payload)})
        if ref is None:
            raise IntegrationError(f"Slack post to {target} failed", integration=self.name)
        return {"channel": ref.channel, "ts": ref.ts}


def _slack_text(payload: dict[str, Any]) -> str:
    if payload.get("message"):
        return str(payload["message"])
    lines = [f"*{payload.get('filename') or payload.get('document_id')}*"]
    for key, value in (payload.get("fields") or {}).items():
        if isinstance(value, (list, dict)):
            value = json.dumps(value, default=str)
        lines.append(f"• {key}: {value}")
    return "\n".join(lines)
