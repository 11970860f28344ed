"""SendNotificationHandler — tells every enabled integration of a type about the document."""

from __future__ import annotations

from docflow.core.constants import StepType
from docflow.pipeline.context import StepContext
from docflow.pipeline.steps.delivery import DeliveryHandler
from docflow.schemas.document import StepResult

DEFAULT_MESSAGE = "Document {filename} processed by {workflow_name}"


class _Placeholders(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


class SendNotificationHandler(DeliveryHandler):
    step_type = StepType.SEND_NOTIFICATION
    description = "Send a notification through the configured integrations"

    async def execute(self, ctx: StepContext) -> StepResult:
        started_at = self._now()
        config = ctx.config

        message = (config.message or DEFAULT_MESSAGE).format_map(_Placeholders(
            filename=ctx.document.filename,
            document_id=ctx.document.id,
            workflow_name=ctx.workflow.name,
        ))
        payload = {
            "event": "document.notification",
            "document_id": ctx.document.id,
            "filename": ctx.document.filename,
            "workflow_id": ctx.workflow.id,
            "workflow_name": ctx.workflow.name,
            "status": ctx.document.status,
            "message": message,
            "channel": config.channel,
        }

        integrations = ctx.services.integrations.for_notifications(config.integration_type)
        if not integrations:
            ctx.log.info("No integrations enabled for notification", integration_type=config.integration_type)

        summary = await self._deliver(ctx, integrations, payload)
        return self._success(ctx, started_at, {
            "integration_type": config.integration_type,
            "message": message,
            **summary,
        })
