"""
StepContext — what a step handler sees while it runs.

WorkflowServices bundles the long-lived collaborators (stores, the text
and field extraction engines, integrations, the approval gate).  It is
built once per runtime and shared by every execution; nothing in it
holds per-document state.

StepContext is built fresh for every step from a document snapshot
reloaded just before dispatch, so a handler always sees what earlier
steps persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from docflow.extraction.engine import FieldExtractionEngine
from docflow.integrations.registry import IntegrationRegistry
from docflow.processing.pipeline import TextExtractionPipeline
from docflow.repositories.base import ApprovalStore, DocumentStore, WorkflowStore
from docflow.schemas.document import Document
from docflow.schemas.workflow import Step, StepConfig, WorkflowDefinition
from docflow.storage.blob_store import BlobStore

if TYPE_CHECKING:
    from docflow.pipeline.approval_gate import ApprovalGate


@dataclass
class WorkflowServices:
    documents: DocumentStore
    workflows: WorkflowStore
    approvals: ApprovalStore
    blobs: BlobStore
    text_extraction: TextExtractionPipeline
    field_extraction: FieldExtractionEngine
    integrations: IntegrationRegistry
    approval_gate: ApprovalGate | None = None


@dataclass
class StepContext:
    document: Document
    workflow: WorkflowDefinition
    step: Step
    position: int
    services: WorkflowServices
    log: structlog.stdlib.BoundLogger

    @property
    def config(self) -> StepConfig:
        return self.step.config

    @property
    def document_id(self) -> str:
        return self.document.id

    @property
    def workflow_id(self) -> str:
        return self.workflow.id

    def error_context(self) -> dict[str, Any]:
        """Keyword context for WorkflowError subclasses."""
        return {
            "document_id": self.document.id,
            "workflow_id": self.workflow.id,
            "step_name": self.step.name,
        }
