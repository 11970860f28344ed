"""
Runtime wiring: builds every long-lived collaborator once per process
(or once per Celery task, which runs inside its own event loop).

    async with build_runtime() as runtime:
        await runtime.executor.execute_workflow(document_id, workflow_id)

Anything passed in is used as-is and left open; anything built here is
closed on exit (HTTP clients, the database engine).
"""

from __future__ import annotations

from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import httpx

from docflow.core.config import Settings, settings as default_settings
from docflow.core.logging import get_logger
from docflow.db.session import create_session_factory
from docflow.extraction.engine import FieldExtractionEngine
from docflow.integrations.inference_client import HuggingFaceInferenceClient, InferenceClient
from docflow.integrations.registry import IntegrationRegistry, build_integrations
from docflow.integrations.slack_channel import NotificationChannel, SlackNotificationChannel
from docflow.pipeline.approval_gate import ApprovalGate
from docflow.pipeline.context import WorkflowServices
from docflow.pipeline.engine import WorkflowExecutor
from docflow.pipeline.workflow_selector import WorkflowSelector
from docflow.processing.ocr.engine import OcrEngine
from docflow.processing.pipeline import TextExtractionPipeline
from docflow.repositories.approvals import SqlApprovalStore
from docflow.repositories.base import ApprovalStore, DocumentStore, WorkflowStore
from docflow.repositories.documents import SqlDocumentStore
from docflow.repositories.workflows import SqlWorkflowStore
from docflow.storage.blob_store import BlobStore, LocalBlobStore

logger = get_logger(__name__)


@dataclass
class Runtime:
    services: WorkflowServices
    executor: WorkflowExecutor
    approval_gate: ApprovalGate
    selector: WorkflowSelector


@asynccontextmanager
async def build_runtime(
    config: Settings | None = None,
    *,
    documents: DocumentStore | None = None,
    workflows: WorkflowStore | None = None,
    approvals: ApprovalStore | None = None,
    blobs: BlobStore | None = None,
    inference: InferenceClient | None = None,
    notification_channel: NotificationChannel | None = None,
) -> AsyncIterator[Runtime]:
    config = config or default_settings

    async with AsyncExitStack() as stack:
        # ── Stores ───────────────────────────────────
        if documents is None or workflows is None or approvals is None:
            factory, engine = create_session_factory(config.DATABASE_URL, echo=False)
            stack.push_async_callback(engine.dispose)
            documents = documents or SqlDocumentStore(factory)
            workflows = workflows or SqlWorkflowStore(factory)
            approvals = approvals or SqlApprovalStore(factory)
        blobs = blobs or LocalBlobStore(config.STORAGE_ROOT)

        # ── External services ────────────────────────
        if inference is None and config.AI_ENABLED and config.HF_API_TOKEN:
            hf_client = HuggingFaceInferenceClient(
                config.HF_API_TOKEN,
                base_url=config.HF_INFERENCE_URL,
                zero_shot_model=config.HF_ZERO_SHOT_MODEL,
                ner_model=config.HF_NER_MODEL,
                ocr_model=config.HF_OCR_MODEL,
                timeout=config.INFERENCE_TIMEOUT_SECONDS,
            )
            stack.push_async_callback(hf_client.aclose)
            inference = hf_client
        if inference is None:
            logger.info("Inference service disabled, using pattern extraction only")

        if notification_channel is None and config.SLACK_BOT_TOKEN:
            slack = SlackNotificationChannel(
                config.SLACK_BOT_TOKEN,
                api_url=config.SLACK_API_URL,
                timeout=config.WEBHOOK_TIMEOUT_SECONDS,
            )
            stack.push_async_callback(slack.aclose)
            notification_channel = slack

        http_client = httpx.AsyncClient(timeout=config.WEBHOOK_TIMEOUT_SECONDS)
        stack.push_async_callback(http_client.aclose)
        integrations: IntegrationRegistry = build_integrations(
            config,
            http_client=http_client,
            slack=notification_channel,
        )

        # ── Engines ──────────────────────────────────
        text_extraction = TextExtractionPipeline(
            OcrEngine(inference, timeout=config.OCR_TIMEOUT_SECONDS, max_images=config.OCR_MAX_IMAGES),
            min_text_length=config.MIN_TEXT_LENGTH,
            printable_threshold=config.PRINTABLE_RATIO_THRESHOLD,
            max_pages=config.MAX_PARSE_PAGES,
            relaxed_max_pages=config.RELAXED_PARSE_MAX_PAGES,
            alternate_attempts=config.ALTERNATE_PARSE_ATTEMPTS,
        )
        field_extraction = FieldExtractionEngine(
            inference,
            threshold=config.AI_CONFIDENCE_THRESHOLD,
            timeout=config.INFERENCE_TIMEOUT_SECONDS,
        )
        gate = ApprovalGate(
            approvals,
            channel=notification_channel,
            approval_channel=config.SLACK_APPROVAL_CHANNEL,
            default_expiry_hours=config.APPROVAL_DEFAULT_EXPIRY_HOURS,
        )

        services = WorkflowServices(
            documents=documents,
            workflows=workflows,
            approvals=approvals,
            blobs=blobs,
            text_extraction=text_extraction,
            field_extraction=field_extraction,
            integrations=integrations,
            approval_gate=gate,
        )
        executor = WorkflowExecutor(services)
        selector = WorkflowSelector(
            workflows,
            category_map=config.CATEGORY_WORKFLOW_MAP,
            default_workflow_name=config.DEFAULT_WORKFLOW_NAME,
            override_confidence=config.HYBRID_OVERRIDE_CONFIDENCE,
        )

        logger.debug(
            "Runtime ready",
            ai_enabled=inference is not None,
            slack_enabled=notification_channel is not None,
            integrations=len(integrations),
        )
        yield Runtime(services=services, executor=executor, approval_gate=gate, selector=selector)
