"""Tests for WorkflowSelector across manual, auto and hybrid modes."""

import pytest

from docflow.core.constants import DocumentCategory, SelectionMethod, SelectionMode, WorkflowStatus
from docflow.pipeline.errors import WorkflowNotFoundError
from docflow.pipeline.templates import default_workflows
from docflow.pipeline.workflow_selector import (
    SelectionOptions,
    WorkflowSelector,
    detect_category,
)
from docflow.repositories.memory import InMemoryWorkflowStore
from docflow.schemas.document import Document
from docflow.schemas.workflow import WorkflowDefinition


@pytest.fixture
def templates() -> dict[str, WorkflowDefinition]:
    return {w.name: w for w in default_workflows()}


@pytest.fixture
def selector(templates) -> WorkflowSelector:
    return WorkflowSelector(InMemoryWorkflowStore(list(templates.values())))


def doc(filename: str, mime_type: str = "application/pdf", size: int = 10_000) -> Document:
    return Document(filename=filename, mime_type=mime_type, size=size)


class TestDetectCategory:

    @pytest.mark.parametrize(
        "filename,category,confidence",
        [
            ("INVOICE_0042.pdf", DocumentCategory.INVOICE, 0.9),
            ("master-agreement.docx", DocumentCategory.CONTRACT, 0.85),
            ("rcp-2291.jpg", DocumentCategory.RECEIPT, 0.8),
            ("terms.pdf", DocumentCategory.LEGAL, 0.75),
            ("q3-report.pdf", DocumentCategory.FINANCIAL, 0.7),
            ("application.pdf", DocumentCategory.FORM, 0.65),
            ("scan-0001.pdf", DocumentCategory.UNKNOWN, 0.3),
        ],
    )
    def test_filename_rules(self, filename, category, confidence):
        assert detect_category(doc(filename)) == (category, confidence)

    def test_large_pdf_is_treated_as_legal(self):
        assert detect_category(doc("scan-0001.pdf", size=2_000_000)) == (DocumentCategory.LEGAL, 0.6)

    def test_large_non_pdf_is_unknown(self):
        assert detect_category(doc("scan-0001.png", mime_type="image/png", size=2_000_000))[0] == DocumentCategory.UNKNOWN


class TestManualMode:

    @pytest.mark.asyncio
    async def test_explicit_id(self, selector, templates):
        contract = templates["Contract Analysis Workflow"]

        result = await selector.select(
            doc("anything.pdf"),
            SelectionOptions(explicit_id=contract.id, mode=SelectionMode.MANUAL),
        )

        assert result.workflow_id == contract.id
        assert result.method == SelectionMethod.MANUAL_ID
        assert result.confidence == 1.0

    @pytest.mark.asyncio
    async def test_invalid_id_falls_back_to_default(self, selector, templates):
        result = await selector.select(
            doc("anything.pdf"),
            SelectionOptions(explicit_id="does-not-exist", mode=SelectionMode.MANUAL),
        )

        assert result.method == SelectionMethod.DEFAULT
        assert result.workflow_id == templates["Document Processing Workflow"].id
        assert result.confidence == 0.5
        assert "does-not-exist" in result.reason

    @pytest.mark.asyncio
    async def test_explicit_category(self, selector, templates):
        result = await selector.select(
            doc("anything.pdf"),
            SelectionOptions(explicit_category="Receipt", mode=SelectionMode.MANUAL),
        )

        assert result.workflow_id == templates["Receipt Processing Workflow"].id
        assert result.method == SelectionMethod.MANUAL_CATEGORY
        assert result.confidence == 0.95

    @pytest.mark.asyncio
    async def test_unknown_category_falls_back_to_default(self, selector):
        result = await selector.select(
            doc("anything.pdf"),
            SelectionOptions(explicit_category="spreadsheet", mode=SelectionMode.MANUAL),
        )

        assert result.method == SelectionMethod.DEFAULT
        assert "spreadsheet" in result.reason


class TestAutoMode:

    @pytest.mark.asyncio
    async def test_filename_detection(self, selector, templates):
        result = await selector.select(doc("invoice-march.pdf"), SelectionOptions(mode=SelectionMode.AUTO))

        assert result.workflow_id == templates["Invoice Processing Workflow"].id
        assert result.method == SelectionMethod.AUTO
        assert result.confidence == 0.9

    @pytest.mark.asyncio
    async def test_undetected_document_uses_default(self, selector, templates):
        result = await selector.select(doc("scan-0001.pdf"), SelectionOptions(mode=SelectionMode.AUTO))

        assert result.method == SelectionMethod.DEFAULT
        assert result.workflow_id == templates["Document Processing Workflow"].id


class TestHybridMode:

    @pytest.mark.asyncio
    async def test_confident_detection_overrides_manual_category(self, selector, templates):
        result = await selector.select(
            doc("invoice-0042.pdf"),
            SelectionOptions(explicit_category="receipt", mode=SelectionMode.HYBRID),
        )

        assert result.workflow_id == templates["Invoice Processing Workflow"].id
        assert result.method == SelectionMethod.HYBRID_AUTO
        assert result.alternatives == [templates["Receipt Processing Workflow"].id]

    @pytest.mark.asyncio
    async def test_weak_detection_keeps_manual_choice(self, selector, templates):
        result = await selector.select(
            doc("q3-report.pdf"),
            SelectionOptions(explicit_category="contract", mode=SelectionMode.HYBRID),
        )

        assert result.workflow_id == templates["Contract Analysis Workflow"].id
        assert result.method == SelectionMethod.HYBRID_MANUAL
        assert result.alternatives == [templates["Financial Analysis Workflow"].id]

    @pytest.mark.asyncio
    async def test_agreeing_signals(self, selector, templates):
        result = await selector.select(
            doc("invoice-0042.pdf"),
            SelectionOptions(explicit_category="invoice", mode=SelectionMode.HYBRID),
        )

        assert result.workflow_id == templates["Invoice Processing Workflow"].id
        assert result.method == SelectionMethod.HYBRID_MANUAL
        assert result.confidence == 0.95

    @pytest.mark.asyncio
    async def test_detection_only(self, selector, templates):
        result = await selector.select(doc("receipt.png", mime_type="image/png"))

        assert result.workflow_id == templates["Receipt Processing Workflow"].id
        assert result.method == SelectionMethod.HYBRID_AUTO


class TestDefaults:

    @pytest.mark.asyncio
    async def test_first_active_workflow_when_default_is_missing(self):
        custom = WorkflowDefinition(name="Custom Intake", status=WorkflowStatus.ACTIVE)
        draft = WorkflowDefinition(name="Draft Intake", status=WorkflowStatus.DRAFT)
        selector = WorkflowSelector(InMemoryWorkflowStore([draft, custom]))

        result = await selector.select(doc("scan.pdf"), SelectionOptions(mode=SelectionMode.AUTO))

        assert result.workflow_id == custom.id
        assert result.method == SelectionMethod.DEFAULT

    @pytest.mark.asyncio
    async def test_no_active_workflow_raises(self):
        selector = WorkflowSelector(InMemoryWorkflowStore())

        with pytest.raises(WorkflowNotFoundError):
            await selector.select(doc("scan.pdf"))

    @pytest.mark.asyncio
    async def test_available_options(self, selector):
        options = await selector.available_options()

        assert len(options["workflows"]) == 7
        invoice = next(c for c in options["categories"] if c["id"] == "invoice")
        assert invoice["workflow_name"] == "Invoice Processing Workflow"
