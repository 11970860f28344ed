"""
IntegrationRegistry — the enabled outbound integrations, grouped by type.

Built once per runtime from settings:
    - one Slack integration when SLACK_BOT_TOKEN is set
    - one webhook integration per URL in NOTIFICATION_WEBHOOK_URLS /
      STORE_DATA_WEBHOOK_URLS
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx

from docflow.core.config import Settings
from docflow.core.constants import IntegrationType
from docflow.integrations.slack_channel import NotificationChannel
from docflow.integrations.webhook import SlackIntegration, WebhookIntegration


class Integration(Protocol):
    name: str
    type: IntegrationType

    async def send(self, payload: dict[str, Any]) -> dict[str, Any]: ...


class IntegrationRegistry:
    def __init__(
        self,
        notification: list[Integration] | None = None,
        store_data: list[Integration] | None = None,
    ) -> None:
        self._notification = list(notification or [])
        self._store_data = list(store_data or [])

    def for_notifications(self, integration_type: IntegrationType) -> list[Integration]:
        return [i for i in self._notification if i.type == integration_type]

    def for_store_data(self, integration_type: IntegrationType) -> list[Integration]:
        return [i for i in self._store_data if i.type == integration_type]

    def __len__(self) -> int:
        return len(self._notification) + len(self._store_data)


def build_integrations(
    settings: Settings,
    *,
    http_client: httpx.AsyncClient,
    slack: NotificationChannel | None = None,
) -> IntegrationRegistry:
    notification: list[Integration] = []
    store_data: list[Integration] = []

    if slack is not None:
        notification.append(SlackIntegration("slack", slack, default_channel=settings.SLACK_NOTIFICATION_CHANNEL))
        store_data.append(SlackIntegration("slack", slack, default_channel=settings.SLACK_NOTIFICATION_CHANNEL))

    for index, url in enumerate(settings.NOTIFICATION_WEBHOOK_URLS):
        notification.append(WebhookIntegration(f"notification-webhook-{index}", url, client=http_client))
    for index, url in enumerate(settings.STORE_DATA_WEBHOOK_URLS):
        store_data.append(WebhookIntegration(f"store-data-webhook-{index}", url, client=http_client))

    return IntegrationRegistry(notification=notification, store_data=store_data)
