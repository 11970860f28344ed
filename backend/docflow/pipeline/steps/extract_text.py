"""
ExtractTextHandler — runs the text extraction cascade on the document bytes.

A soft failure (salvage-failed text or an OCR placeholder) still
completes the step: the labeled text and confidence 0 are persisted and
downstream steps decide what to do with them.
"""

from __future__ import annotations

from docflow.core.constants import StepType
from docflow.pipeline.context import StepContext
from docflow.pipeline.errors import StepExecutionError, StorageError
from docflow.pipeline.step import StepHandler
from docflow.schemas.document import StepResult


class ExtractTextHandler(StepHandler):
    step_type = StepType.EXTRACT_TEXT
    description = "Extract text from the document bytes"

    async def execute(self, ctx: StepContext) -> StepResult:
        started_at = self._now()
        document = ctx.document

        try:
            data = await ctx.services.blobs.get_bytes(document.storage_key)
        except StorageError as exc:
            raise StepExecutionError(
                f"Cannot load document bytes: {exc}",
                **ctx.error_context(),
            ) from exc

        result = await ctx.services.text_extraction.extract(
            data,
            document.mime_type,
            filename=document.filename,
        )

        await ctx.services.documents.update(
            document.id,
            extracted_text=result.text,
            extraction_stats={
                **result.stats,
                "source": result.source,
                "confidence": round(result.confidence, 4),
            },
        )

        ctx.log.info(
            "Text extracted",
            source=result.source,
            confidence=round(result.confidence, 4),
            text_length=len(result.text),
            soft_failure=result.is_soft_failure,
        )

        return self._success(ctx, started_at, {
            "source": result.source,
            "confidence": round(result.confidence, 4),
            "text_length": len(result.text),
            "soft_failure": result.is_soft_failure,
        })
