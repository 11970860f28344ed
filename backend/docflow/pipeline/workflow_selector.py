"""
WorkflowSelector — picks the WorkflowDefinition for a document.

Modes:
    manual  explicit workflow id (1.0), else explicit category mapped to
            a workflow name (0.95), else the default workflow (0.5)
    auto    filename / mime / size heuristics mapped to a workflow
    hybrid  both; auto overrides a disagreeing manual choice only when
            its confidence exceeds HYBRID_OVERRIDE_CONFIDENCE

Selection is advisory and read-only: nothing is written to any store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from docflow.core.config import settings
from docflow.core.constants import DocumentCategory, SelectionMethod, SelectionMode, WorkflowStatus
from docflow.core.logging import get_logger
from docflow.pipeline.errors import WorkflowNotFoundError
from docflow.repositories.base import WorkflowStore
from docflow.schemas.document import Document

logger = get_logger(__name__)

LARGE_PDF_BYTES = 1_000_000

# (category, confidence, filename substrings), checked in order
FILENAME_RULES: tuple[tuple[DocumentCategory, float, tuple[str, ...]], ...] = (
    (DocumentCategory.INVOICE, 0.9, ("invoice", "inv-", "bill")),
    (DocumentCategory.CONTRACT, 0.85, ("contract", "agreement", "nda")),
    (DocumentCategory.RECEIPT, 0.8, ("receipt", "rcp-")),
    (DocumentCategory.LEGAL, 0.75, ("legal", "terms")),
    (DocumentCategory.FINANCIAL, 0.7, ("financial", "statement", "report")),
    (DocumentCategory.FORM, 0.65, ("form", "application")),
)


@dataclass
class SelectionOptions:
    explicit_id: str | None = None
    explicit_category: DocumentCategory | str | None = None
    mode: SelectionMode = SelectionMode.HYBRID


@dataclass
class SelectionResult:
    workflow_id: str | None
    method: SelectionMethod
    confidence: float
    reason: str
    alternatives: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflow_id": self.workflow_id,
            "method": self.method,
            "confidence": self.confidence,
            "reason": self.reason,
            "alternatives": self.alternatives,
        }


def detect_category(document: Document) -> tuple[DocumentCategory, float]:
    """Cheap heuristic classifier over filename, mime type and size."""
    filename = (document.filename or "").lower()
    for category, confidence, needles in FILENAME_RULES:
        if any(needle in filename for needle in needles):
            return category, confidence
    if document.mime_type.lower() == "application/pdf" and document.size > LARGE_PDF_BYTES:
        return DocumentCategory.LEGAL, 0.6
    return DocumentCategory.UNKNOWN, 0.3


class WorkflowSelector:
    def __init__(
        self,
        workflows: WorkflowStore,
        *,
        category_map: dict[str, str] | None = None,
        default_workflow_name: str | None = None,
        override_confidence: float | None = None,
    ) -> None:
        self.workflows = workflows
        self.category_map = category_map if category_map is not None else settings.CATEGORY_WORKFLOW_MAP
        self.default_workflow_name = default_workflow_name or settings.DEFAULT_WORKFLOW_NAME
        self.override_confidence = (
            settings.HYBRID_OVERRIDE_CONFIDENCE if override_confidence is None else override_confidence
        )

    async def select(self, document: Document, options: SelectionOptions | None = None) -> SelectionResult:
        options = options or SelectionOptions()
        log = logger.bind(document_id=document.id, filename=document.filename, mode=options.mode)

        if options.mode == SelectionMode.MANUAL:
            result = await self._manual(document, options)
        elif options.mode == SelectionMode.AUTO:
            result = await self._auto(document)
        else:
            result = await self._hybrid(document, options)

        log.info(
            "Workflow selected",
            workflow_id=result.workflow_id,
            method=result.method,
            confidence=result.confidence,
            reason=result.reason,
        )
        return result

    # ── Modes ────────────────────────────────────────────

    async def _manual(self, document: Document, options: SelectionOptions) -> SelectionResult:
        if options.explicit_id:
            workflow = await self.workflows.get(options.explicit_id)
            if workflow is not None:
                return SelectionResult(
                    workflow_id=workflow.id,
                    method=SelectionMethod.MANUAL_ID,
                    confidence=1.0,
                    reason=f"Workflow explicitly specified: {workflow.name}",
                )
            logger.warning("Invalid workflow id provided", workflow_id=options.explicit_id)
            return await self._default(f"Invalid workflow id provided: {options.explicit_id}")

        if options.explicit_category:
            category = str(options.explicit_category).lower()
            name = self.category_map.get(category)
            if name is None:
                logger.warning("Unknown document category", category=category)
                return await self._default(f"Unknown document category: {category}")
            workflow_id = await self._find_id(name)
            if workflow_id is None:
                logger.warning("Workflow not found for category", category=category, workflow_name=name)
                return await self._default(f"Workflow not found: {name}")
            return SelectionResult(
                workflow_id=workflow_id,
                method=SelectionMethod.MANUAL_CATEGORY,
                confidence=0.95,
                reason=f"Document category specified: {category} → {name}",
            )

        return await self._default("No manual selection provided")

    async def _auto(self, document: Document) -> SelectionResult:
        category, confidence = detect_category(document)
        if category != DocumentCategory.UNKNOWN:
            name = self.category_map.get(category)
            workflow_id = await self._find_id(name) if name else None
            if workflow_id is not None:
                return SelectionResult(
                    workflow_id=workflow_id,
                    method=SelectionMethod.AUTO,
                    confidence=confidence,
                    reason=f"Detected document type: {category} → {name} ({round(confidence * 100)}% confidence)",
                )
            logger.warning("Detected category has no workflow", category=category, workflow_name=name)
        return await self._default("Could not confidently detect document type")

    async def _hybrid(self, document: Document, options: SelectionOptions) -> SelectionResult:
        if not (options.explicit_id or options.explicit_category):
            auto = await self._auto(document)
            if auto.method == SelectionMethod.DEFAULT:
                return auto
            return SelectionResult(
                workflow_id=auto.workflow_id,
                method=SelectionMethod.HYBRID_AUTO,
                confidence=auto.confidence,
                reason=auto.reason,
            )

        manual = await self._manual(document, options)
        auto = await self._auto(document)

        if auto.method == SelectionMethod.AUTO and auto.workflow_id != manual.workflow_id:
            if auto.confidence > self.override_confidence:
                return SelectionResult(
                    workflow_id=auto.workflow_id,
                    method=SelectionMethod.HYBRID_AUTO,
                    confidence=auto.confidence,
                    reason=f"Detection overrides manual selection: {auto.reason}",
                    alternatives=[manual.workflow_id] if manual.workflow_id else [],
                )
            return SelectionResult(
                workflow_id=manual.workflow_id,
                method=SelectionMethod.HYBRID_MANUAL,
                confidence=manual.confidence,
                reason=f"Manual selection kept, detection confidence too low to override: {manual.reason}",
                alternatives=[auto.workflow_id],
            )

        return SelectionResult(
            workflow_id=manual.workflow_id,
            method=SelectionMethod.HYBRID_MANUAL if manual.method != SelectionMethod.DEFAULT else manual.method,
            confidence=manual.confidence,
            reason=manual.reason,
        )

    async def _default(self, reason: str) -> SelectionResult:
        workflow_id = await self._find_id(self.default_workflow_name)
        if workflow_id is None:
            active = await self.workflows.list(status=WorkflowStatus.ACTIVE)
            if not active:
                raise WorkflowNotFoundError(
                    f"Default workflow '{self.default_workflow_name}' not found and no ACTIVE workflow exists"
                )
            workflow_id = active[0].id
        return SelectionResult(
            workflow_id=workflow_id,
            method=SelectionMethod.DEFAULT,
            confidence=0.5,
            reason=reason,
        )

    async def _find_id(self, name: str) -> str | None:
        workflow = await self.workflows.find_by_name(name)
        return workflow.id if workflow else None

    # ── Options ──────────────────────────────────────────

    async def available_options(self) -> dict[str, Any]:
        """ACTIVE workflows and the category → workflow mapping."""
        workflows = await self.workflows.list(status=WorkflowStatus.ACTIVE)
        return {
            "workflows": [{"id": w.id, "name": w.name, "description": w.description} for w in workflows],
            "categories": [
                {"id": category, "name": category.capitalize(), "workflow_name": name}
                for category, name in self.category_map.items()
            ],
        }
