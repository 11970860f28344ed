"""
FieldExtractionEngine — extracted text in, structured field map out.

    engine = FieldExtractionEngine(inference=client, threshold=0.65)
    result = await engine.extract(text, "invoice")
    result.values()       # {"total_amount": 250.0, ...}
    result.coverage       # fields_found / total_fields

With no inference client (or a dead one) every AI strategy yields
nothing and the regex baseline carries the whole result.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from docflow.core.config import settings
from docflow.core.constants import DocumentCategory, ExtractionMethod
from docflow.core.logging import get_logger
from docflow.core.tracing import traceable_step
from docflow.extraction.ai import AiAnalyzer
from docflow.extraction.entities import tag_entities
from docflow.extraction.extractors import AnalysisInput, extractor_for
from docflow.extraction.strategies import ExtractedField, resolve_field
from docflow.integrations.inference_client import Entity, InferenceClient

logger = get_logger(__name__)

# Zero-shot label → category
CATEGORY_LABELS: dict[str, DocumentCategory] = {
    "invoice or bill": DocumentCategory.INVOICE,
    "contract or agreement": DocumentCategory.CONTRACT,
    "purchase receipt": DocumentCategory.RECEIPT,
    "legal document": DocumentCategory.LEGAL,
    "financial statement or report": DocumentCategory.FINANCIAL,
    "form or application": DocumentCategory.FORM,
    "general document": DocumentCategory.GENERAL,
}

CATEGORY_KEYWORDS: dict[DocumentCategory, tuple[str, ...]] = {
    DocumentCategory.INVOICE: ("invoice", "bill to", "amount due", "due date", "inv-"),
    DocumentCategory.CONTRACT: ("agreement", "contract", "parties", "hereinafter", "whereas"),
    DocumentCategory.RECEIPT: ("receipt", "cashier", "change", "thank you for your purchase", "subtotal"),
    DocumentCategory.LEGAL: ("court", "plaintiff", "defendant", "jurisdiction", "pursuant"),
    DocumentCategory.FINANCIAL: ("balance sheet", "statement", "revenue", "fiscal", "assets"),
    DocumentCategory.FORM: ("application", "signature", "please fill", "form"),
}

CLASSIFY_INPUT_CHARS = 1500
KEYWORD_MAX_CONFIDENCE = 0.8


@dataclass
class FieldExtractionResult:
    """Structured fields plus coverage and provenance."""

    category: DocumentCategory
    fields: dict[str, ExtractedField] = field(default_factory=dict)
    total_fields: int = 0
    entities: list[Entity] = field(default_factory=list)
    category_confidence: float = 1.0
    duration_ms: int = 0

    @property
    def fields_found(self) -> int:
        return len(self.fields)

    @property
    def coverage(self) -> float:
        if not self.total_fields:
            return 0.0
        return round(self.fields_found / self.total_fields, 4)

    @property
    def extraction_method(self) -> ExtractionMethod:
        methods = {f.method for f in self.fields.values()}
        if not methods:
            return ExtractionMethod.NONE
        if methods == {ExtractionMethod.AI}:
            return ExtractionMethod.AI
        if methods == {ExtractionMethod.PATTERN}:
            return ExtractionMethod.PATTERN
        return ExtractionMethod.HYBRID

    def values(self) -> dict[str, Any]:
        return {name: f.value for name, f in self.fields.items()}

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "category_confidence": round(self.category_confidence, 4),
            "extraction_method": self.extraction_method,
            "fields": {name: f.to_dict() for name, f in self.fields.items()},
            "fields_found": self.fields_found,
            "total_fields": self.total_fields,
            "coverage": self.coverage,
            "entities": [e.to_dict() for e in self.entities],
            "duration_ms": self.duration_ms,
        }


def _coerce_category(category: DocumentCategory | str | None) -> DocumentCategory | None:
    if category is None or category == "":
        return None
    try:
        return DocumentCategory(str(category).lower())
    except ValueError:
        logger.warning("Unknown document category, using general extractor", category=category)
        return DocumentCategory.GENERAL


def classify_by_keywords(text: str) -> tuple[DocumentCategory, float]:
    lowered = text.lower()
    hits = {
        category: sum(1 for keyword in keywords if keyword in lowered)
        for category, keywords in CATEGORY_KEYWORDS.items()
    }
    best = max(hits, key=hits.get)
    if hits[best] == 0:
        return DocumentCategory.GENERAL, 0.3
    return best, min(KEYWORD_MAX_CONFIDENCE, 0.4 + 0.1 * hits[best])


class FieldExtractionEngine:
    """
    Category-aware field extraction blending AI and regex strategies.

    A fresh AiAnalyzer is built per call, so a timeout during one
    document never disables AI for the next.
    """

    def __init__(
        self,
        inference: InferenceClient | None = None,
        *,
        threshold: float | None = None,
        timeout: float | None = None,
    ) -> None:
        self._inference = inference
        self.threshold = settings.AI_CONFIDENCE_THRESHOLD if threshold is None else threshold
        self.timeout = settings.INFERENCE_TIMEOUT_SECONDS if timeout is None else timeout

    def _analyzer(self) -> AiAnalyzer:
        return AiAnalyzer(self._inference, timeout=self.timeout)

    async def classify(self, text: str) -> tuple[DocumentCategory, float]:
        """Pick a category: zero-shot when it clears the threshold, else keywords."""
        return await self._classify(text, self._analyzer())

    async def _classify(self, text: str, ai: AiAnalyzer) -> tuple[DocumentCategory, float]:
        result = await ai.classify(text[:CLASSIFY_INPUT_CHARS], list(CATEGORY_LABELS))
        if result is not None and result.top_score >= self.threshold:
            return CATEGORY_LABELS[result.top_label], result.top_score
        return classify_by_keywords(text)

    @traceable_step(name="field_extraction", run_type="chain")
    async def extract(
        self,
        text: str,
        category: DocumentCategory | str | None = None,
        *,
        threshold: float | None = None,
    ) -> FieldExtractionResult:
        """Extract the category's fields from `text`.  Never raises on AI failure."""
        started = time.monotonic()
        threshold = self.threshold if threshold is None else threshold
        ai = self._analyzer()

        resolved = _coerce_category(category)
        confidence = 1.0
        if resolved is None:
            resolved, confidence = await self._classify(text, ai)

        extractor = extractor_for(resolved)
        entities = await tag_entities(text, ai)
        inputs = AnalysisInput(text=text, entities=entities, ai=ai, threshold=threshold)

        chains = extractor.strategies(inputs)
        fields: dict[str, ExtractedField] = {}
        for name, chain in chains.items():
            value = await resolve_field(chain)
            if value is not None:
                fields[name] = value

        result = FieldExtractionResult(
            category=resolved,
            fields=fields,
            total_fields=len(chains),
            entities=entities,
            category_confidence=confidence,
            duration_ms=int((time.monotonic() - started) * 1000),
        )

        logger.info(
            "Field extraction complete",
            category=resolved,
            fields_found=result.fields_found,
            total_fields=result.total_fields,
            method=result.extraction_method,
            ai_calls=ai.calls,
            ai_failures=ai.failures,
            duration_ms=result.duration_ms,
        )
        return result
