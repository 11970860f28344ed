"""AnalyzeContentHandler — structured field extraction over the extracted text."""

from __future__ import annotations

from docflow.core.constants import StepType
from docflow.pipeline.context import StepContext
from docflow.pipeline.errors import StepPreconditionError
from docflow.pipeline.step import StepHandler
from docflow.schemas.document import StepResult

MISSING_TEXT_ERROR = "No extracted text found. Text extraction must run before analysis."


class AnalyzeContentHandler(StepHandler):
    step_type = StepType.ANALYZE_CONTENT
    description = "Extract structured fields from the document text"

    async def execute(self, ctx: StepContext) -> StepResult:
        started_at = self._now()
        text = ctx.document.extracted_text
        if not text or not text.strip():
            raise StepPreconditionError(MISSING_TEXT_ERROR, **ctx.error_context())

        config = ctx.config
        result = await ctx.services.field_extraction.extract(
            text,
            config.category,
            threshold=config.confidence_threshold,
        )

        await ctx.services.documents.update(ctx.document.id, structured_fields=result.to_dict())

        ctx.log.info(
            "Content analyzed",
            category=result.category,
            fields_found=result.fields_found,
            total_fields=result.total_fields,
            method=result.extraction_method,
        )

        return self._success(ctx, started_at, {
            "category": result.category,
            "extraction_method": result.extraction_method,
            "fields_found": result.fields_found,
            "total_fields": result.total_fields,
            "coverage": result.coverage,
        })
