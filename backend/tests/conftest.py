"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest

from docflow.core.constants import WorkflowStatus
from docflow.extraction.engine import FieldExtractionEngine
from docflow.integrations.registry import IntegrationRegistry
from docflow.pipeline.approval_gate import ApprovalGate
from docflow.pipeline.context import WorkflowServices
from docflow.pipeline.engine import WorkflowExecutor
from docflow.processing.ocr.engine import OcrEngine
from docflow.processing.pipeline import TextExtractionPipeline
from docflow.repositories.memory import (
    InMemoryApprovalStore,
    InMemoryDocumentStore,
    InMemoryWorkflowStore,
)
from docflow.schemas.approval import NotificationRef
from docflow.schemas.document import Document
from docflow.schemas.workflow import Step, WorkflowDefinition
from docflow.storage.blob_store import InMemoryBlobStore

SAMPLE_INVOICE_TEXT = """ACME Supplies Ltd
Invoice Number: INV-2024-0042
Invoice Date: 03/15/2024
Due Date: 04/14/2024

Bill To: Globex Corporation

Paper, A4                   $45.00
Toner cartridge             $120.00

Subtotal: $165.00
Tax: $13.20
Total: $178.20

Payment Terms: Net 30
Contact: billing@acme-supplies.example
"""


# ── Sample documents ─────────────────────────────────────

def _pdf_escape(line: str) -> str:
    return line.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def make_pdf(lines: list[str]) -> bytes:
    """Minimal single-page Helvetica PDF with a correct xref table."""
    body = " ".join(f"({_pdf_escape(line)}) Tj T*" for line in lines)
    stream = f"BT /F1 12 Tf 14 TL 72 720 Td {body} ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets: list[int] = []
    for number, obj in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + obj + b"\nendobj\n"

    xref_offset = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref_offset)
    return bytes(out)


@pytest.fixture
def sample_invoice_text() -> str:
    return SAMPLE_INVOICE_TEXT


@pytest.fixture
def sample_pdf() -> bytes:
    return make_pdf([
        "Invoice Number: INV-7731",
        "Invoice Date: 2024-02-01",
        "Total: $1,250.00",
        "Thank you for your business.",
    ])


# ── Time ─────────────────────────────────────────────────

class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


# ── External service doubles ─────────────────────────────

@pytest.fixture
def mock_channel() -> AsyncMock:
    """NotificationChannel double that accepts every post and update."""
    channel = AsyncMock()
    channel.post_message.return_value = NotificationRef(channel="C123", ts="1717243200.000100")
    channel.update_message.return_value = True
    return channel


class RecordingIntegration:
    """Integration double that records payloads, or fails when told to."""

    def __init__(self, name: str, type_: str, *, error: Exception | None = None) -> None:
        self.name = name
        self.type = type_
        self.error = error
        self.payloads: list[dict[str, Any]] = []

    async def send(self, payload: dict[str, Any]) -> dict[str, Any]:
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        return {"status_code": 200}


# ── Engine wiring ────────────────────────────────────────

@dataclass
class Harness:
    """Executor plus its in-memory collaborators."""

    executor: WorkflowExecutor
    services: WorkflowServices
    gate: ApprovalGate
    documents: InMemoryDocumentStore
    workflows: InMemoryWorkflowStore
    approvals: InMemoryApprovalStore
    blobs: InMemoryBlobStore

    async def add_document(self, text: str | bytes, *, filename: str = "doc.txt", mime_type: str = "text/plain") -> Document:
        data = text.encode("utf-8") if isinstance(text, str) else text
        key = f"test/{filename}"
        await self.blobs.put_bytes(key, data)
        return await self.documents.create(
            Document(filename=filename, mime_type=mime_type, size=len(data), storage_key=key)
        )

    async def add_workflow(self, *steps: Step, name: str = "Test Workflow", status=WorkflowStatus.ACTIVE) -> WorkflowDefinition:
        return await self.workflows.save(WorkflowDefinition(name=name, steps=list(steps), status=status))


def step(name: str, step_type: str, position: int, **config: Any) -> Step:
    return Step(name=name, type=step_type, position=position, config=config)


@pytest.fixture
def make_harness(clock: FrozenClock):
    """Factory: build an executor over fresh in-memory stores."""

    def _make(
        *,
        inference=None,
        channel=None,
        integrations: IntegrationRegistry | None = None,
        use_clock: bool = False,
    ) -> Harness:
        documents = InMemoryDocumentStore()
        workflows = InMemoryWorkflowStore()
        approvals = InMemoryApprovalStore()
        blobs = InMemoryBlobStore()
        gate_kwargs = {"clock": clock} if use_clock else {}
        gate = ApprovalGate(approvals, channel=channel, default_expiry_hours=24, **gate_kwargs)
        services = WorkflowServices(
            documents=documents,
            workflows=workflows,
            approvals=approvals,
            blobs=blobs,
            text_extraction=TextExtractionPipeline(OcrEngine(inference, timeout=1.0)),
            field_extraction=FieldExtractionEngine(inference, threshold=0.65, timeout=1.0),
            integrations=integrations or IntegrationRegistry(),
            approval_gate=gate,
        )
        executor = WorkflowExecutor(services, clock=clock if use_clock else _utc_now)
        return Harness(
            executor=executor,
            services=services,
            gate=gate,
            documents=documents,
            workflows=workflows,
            approvals=approvals,
            blobs=blobs,
        )

    return _make


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
