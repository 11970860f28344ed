#!/usr/bin/env python3
"""
Demo script — run the workflow engine locally without Postgres/Celery.

Uses the in-memory stores, no inference service and no Slack token, so
field extraction runs on patterns only and approvals are decided in
code.  Shows a full pause → approve → resume cycle, a rejection, and
workflow selection.

Usage:
    cd backend
    python -m scripts.demo_pipeline
"""

import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

SAMPLE_INVOICE = b"""ACME Supplies Ltd
Invoice Number: INV-2024-0042
Invoice Date: 03/15/2024
Due Date: 04/14/2024

Bill To: Globex Corporation

Description                 Qty     Amount
Paper, A4                   10      $45.00
Toner cartridge              2      $120.00

Subtotal: $165.00
Tax: $13.20
Total: $178.20

Payment Terms: Net 30
Contact: billing@acme-supplies.example
"""


async def _build():
    from docflow.pipeline.templates import default_workflows
    from docflow.repositories.memory import (
        InMemoryApprovalStore,
        InMemoryDocumentStore,
        InMemoryWorkflowStore,
    )
    from docflow.runtime import build_runtime
    from docflow.storage.blob_store import InMemoryBlobStore

    documents = InMemoryDocumentStore()
    workflows = InMemoryWorkflowStore(default_workflows())
    blobs = InMemoryBlobStore()
    runtime_cm = build_runtime(
        documents=documents,
        workflows=workflows,
        approvals=InMemoryApprovalStore(),
        blobs=blobs,
        inference=None,
        notification_channel=None,
    )
    return runtime_cm, documents, blobs


async def _upload(documents, blobs, filename: str, data: bytes):
    from docflow.schemas.document import Document

    key = f"demo/{filename}"
    await blobs.put_bytes(key, data)
    return await documents.create(
        Document(filename=filename, mime_type="text/plain", size=len(data), storage_key=key)
    )


async def run_approval_cycle(runtime, documents, blobs):
    """DEMO 1: Invoice workflow pauses for finance approval, then resumes."""
    print("\n" + "=" * 70)
    print("  DEMO 1: Invoice — pause for approval, approve, resume")
    print("=" * 70)

    document = await _upload(documents, blobs, "invoice-2024-0042.txt", SAMPLE_INVOICE)
    selection = await runtime.selector.select(document)
    print(f"\n  Selected workflow: {selection.reason} [{selection.method}]")

    result = await runtime.executor.execute_workflow(document.id, selection.workflow_id)
    _print_result(result)

    print(f"  Approving {result.pending_approval_id[:12]}... as finance-lead")
    await runtime.approval_gate.process_decision(result.pending_approval_id, "approve", "finance-lead")

    final = await documents.get(document.id)
    _print_fields(final.structured_fields)
    from docflow.pipeline.engine import WorkflowRunResult
    _print_result(WorkflowRunResult.from_state(final.id, final.workflow_execution))


async def run_rejection(runtime, documents, blobs):
    """DEMO 2: Contract workflow rejected at legal review."""
    print("\n" + "=" * 70)
    print("  DEMO 2: Contract — rejected at legal review")
    print("=" * 70)

    text = (
        b"SERVICE AGREEMENT\n\nThis Service Agreement is entered into between "
        b"Initech LLC and Umbrella Corp, effective January 1, 2024.\n"
        b"This agreement shall be governed by the laws of the State of Delaware.\n"
    )
    document = await _upload(documents, blobs, "contract-initech.txt", text)
    selection = await runtime.selector.select(document)
    result = await runtime.executor.execute_workflow(document.id, selection.workflow_id)
    _print_result(result)

    await runtime.approval_gate.process_decision(
        result.pending_approval_id, "reject", "counsel", "Missing liability cap"
    )
    final = await documents.get(document.id)
    from docflow.pipeline.engine import WorkflowRunResult
    _print_result(WorkflowRunResult.from_state(final.id, final.workflow_execution))


def _print_fields(fields: dict):
    print(f"\n  Extracted fields ({fields.get('extraction_method')}, coverage {fields.get('coverage')}):")
    for name, field in (fields.get("fields") or {}).items():
        print(f"    {name:<16} = {field.get('value')!r} ({field.get('confidence')})")


def _print_result(result):
    """Pretty-print a WorkflowRunResult."""
    print(f"\n{'─' * 50}")
    print(f"  Document     : {result.document_id[:12]}...")
    print(f"  Status       : {result.status}")
    print(f"  Steps        : {result.steps_completed}/{result.total_steps or '?'}")
    if result.pending_approval_id:
        print(f"  Waiting on   : approval {result.pending_approval_id[:12]}...")
    if result.error:
        print(f"  Error        : {result.error}")

    print("\n  Step Results:")
    for sr in result.step_results:
        icon = "✓" if sr["status"] == "COMPLETED" else "✗" if sr["status"] == "FAILED" else "⏸"
        print(f"    {icon} {sr['step_name']} [{sr['step_type']}] ({sr['duration_ms']}ms)")
    print(f"{'─' * 50}\n")


async def main():
    from docflow.core.logging import setup_logging
    setup_logging("WARNING")     # quiet logs, show formatted output only

    print("\n╔" + "═" * 68 + "╗")
    print("║         DOCFLOW — WORKFLOW ENGINE DEMO (in-memory stores)          ║")
    print("╚" + "═" * 68 + "╝")

    runtime_cm, documents, blobs = await _build()
    async with runtime_cm as runtime:
        await run_approval_cycle(runtime, documents, blobs)
        await run_rejection(runtime, documents, blobs)

    print("\n✅ All demos completed successfully!\n")


if __name__ == "__main__":
    asyncio.run(main())
