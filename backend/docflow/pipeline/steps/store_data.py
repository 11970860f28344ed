"""StoreDataHandler — pushes the structured fields to every enabled integration of a type."""

from __future__ import annotations

from docflow.core.constants import StepType
from docflow.pipeline.context import StepContext
from docflow.pipeline.steps.delivery import DeliveryHandler
from docflow.schemas.document import StepResult


class StoreDataHandler(DeliveryHandler):
    step_type = StepType.STORE_DATA
    description = "Send extracted data to the configured integrations"

    async def execute(self, ctx: StepContext) -> StepResult:
        started_at = self._now()
        config = ctx.config
        document = ctx.document
        structured = document.structured_fields or {}

        payload = {
            "event": "document.data",
            "document_id": document.id,
            "filename": document.filename,
            "workflow_id": ctx.workflow.id,
            "workflow_name": ctx.workflow.name,
            "category": structured.get("category"),
            "fields": {name: f.get("value") for name, f in (structured.get("fields") or {}).items()},
            "extraction": {
                "source": document.extraction_stats.get("source"),
                "confidence": document.extraction_stats.get("confidence"),
            },
        }
        if config.include_text:
            payload["text"] = document.extracted_text

        integrations = ctx.services.integrations.for_store_data(config.integration_type)
        if not integrations:
            ctx.log.info("No integrations enabled for data storage", integration_type=config.integration_type)

        summary = await self._deliver(ctx, integrations, payload)
        return self._success(ctx, started_at, {
            "integration_type": config.integration_type,
            "field_count": len(payload["fields"]),
            **summary,
        })
