"""
Best-effort fan-out to outbound integrations.

Shared by the send_notification and store_data handlers.  Every
integration is attempted; failures are collected into the step result
and the document's integration log, never raised.
"""

from __future__ import annotations

from typing import Any

from docflow.integrations.registry import Integration
from docflow.pipeline.context import StepContext
from docflow.pipeline.errors import IntegrationError
from docflow.pipeline.step import StepHandler
from docflow.schemas.common import utcnow


class DeliveryHandler(StepHandler):
    """StepHandler with the integration fan-out used by outbound steps."""

    async def _deliver(
        self,
        ctx: StepContext,
        integrations: list[Integration],
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        results: list[dict[str, Any]] = []

        for integration in integrations:
            entry: dict[str, Any] = {
                "step_name": ctx.step.name,
                "step_type": ctx.step.type,
                "integration": integration.name,
                "integration_type": integration.type,
                "sent_at": utcnow().isoformat(),
            }
            try:
                response = await integration.send(payload)
                entry.update(success=True, response=response)
            except IntegrationError as exc:
                entry.update(success=False, error=str(exc))
                ctx.log.warning("Integration delivery failed", integration=integration.name, error=str(exc))
            except Exception as exc:
                entry.update(success=False, error=f"Unexpected: {exc}")
                ctx.log.exception("Integration raised unexpectedly", integration=integration.name)

            await ctx.services.documents.append_integration_notification(ctx.document.id, entry)
            results.append(entry)

        sent = sum(1 for r in results if r["success"])
        return {
            "attempted": len(results),
            "sent": sent,
            "failed": len(results) - sent,
            "results": results,
        }
