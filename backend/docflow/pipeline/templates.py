"""
Default workflow templates, one per document category.

Names match settings.CATEGORY_WORKFLOW_MAP so the selector can resolve
them.  `default_workflows()` returns fresh ACTIVE definitions ready to
save; scripts/seed_workflows.py writes them to the database.
"""

from __future__ import annotations

from typing import Any

from docflow.core.constants import DocumentCategory, RejectionPolicy, SelectionMode, WorkflowStatus
from docflow.schemas.workflow import Step, WorkflowDefinition, WorkflowTrigger


def _steps(*specs: tuple[str, str, dict[str, Any]]) -> list[Step]:
    return [
        Step(name=name, type=step_type, position=index, config=config)
        for index, (name, step_type, config) in enumerate(specs)
    ]


def _template(
    name: str,
    description: str,
    category: DocumentCategory | None,
    steps: list[Step],
) -> WorkflowDefinition:
    return WorkflowDefinition(
        name=name,
        description=description,
        steps=steps,
        status=WorkflowStatus.ACTIVE,
        trigger=WorkflowTrigger(mode=SelectionMode.AUTO if category else SelectionMode.MANUAL, category=category),
        is_template=True,
    )


def invoice_workflow() -> WorkflowDefinition:
    return _template(
        "Invoice Processing Workflow",
        "Extract invoice fields, get finance approval, then push to the ledger webhook",
        DocumentCategory.INVOICE,
        _steps(
            ("extract_text", "extract_text", {}),
            ("analyze_invoice", "analyze_content", {"category": "invoice"}),
            ("finance_approval", "require_approval", {
                "title": "Approve invoice for payment",
                "description": "Check vendor, amount and due date before payment.",
                "expires_in_hours": 48,
            }),
            ("store_invoice", "store_data", {"integration_type": "webhook"}),
            ("notify_processed", "send_notification", {
                "integration_type": "slack",
                "message": "Invoice {filename} approved and stored",
            }),
        ),
    )


def contract_workflow() -> WorkflowDefinition:
    return _template(
        "Contract Analysis Workflow",
        "Extract parties, dates and key terms, then request legal review",
        DocumentCategory.CONTRACT,
        _steps(
            ("extract_text", "extract_text", {}),
            ("analyze_contract", "analyze_content", {"category": "contract"}),
            ("legal_review", "require_approval", {
                "title": "Legal review required",
                "description": "Review contract parties, term and governing law.",
                "expires_in_hours": 72,
            }),
            ("store_contract", "store_data", {"integration_type": "webhook", "include_text": True}),
        ),
    )


def receipt_workflow() -> WorkflowDefinition:
    return _template(
        "Receipt Processing Workflow",
        "Extract merchant, total and items for expense tracking",
        DocumentCategory.RECEIPT,
        _steps(
            ("extract_text", "extract_text", {}),
            ("analyze_receipt", "analyze_content", {"category": "receipt"}),
            ("store_expense", "store_data", {"integration_type": "webhook"}),
        ),
    )


def legal_workflow() -> WorkflowDefinition:
    return _template(
        "Legal Document Workflow",
        "Legal document processing with a mandatory compliance sign-off",
        DocumentCategory.LEGAL,
        _steps(
            ("extract_text", "extract_text", {}),
            ("analyze_legal", "analyze_content", {"category": "legal"}),
            ("compliance_signoff", "require_approval", {
                "title": "Compliance sign-off",
                "expires_in_hours": 72,
            }),
            ("notify_legal", "send_notification", {"integration_type": "slack"}),
        ),
    )


def financial_workflow() -> WorkflowDefinition:
    return _template(
        "Financial Analysis Workflow",
        "Financial document analysis with data export",
        DocumentCategory.FINANCIAL,
        _steps(
            ("extract_text", "extract_text", {}),
            ("analyze_financial", "analyze_content", {"category": "financial"}),
            ("store_financials", "store_data", {"integration_type": "webhook"}),
        ),
    )


def form_workflow() -> WorkflowDefinition:
    return _template(
        "Form Processing Workflow",
        "Form processing with an optional reviewer check",
        DocumentCategory.FORM,
        _steps(
            ("extract_text", "extract_text", {}),
            ("analyze_form", "analyze_content", {"category": "form"}),
            ("review_form", "require_approval", {
                "title": "Review submitted form",
                "rejection_policy": RejectionPolicy.COMPLETE_WORKFLOW,
            }),
            ("store_form", "store_data", {"integration_type": "webhook"}),
        ),
    )


def generic_workflow() -> WorkflowDefinition:
    return _template(
        "Document Processing Workflow",
        "General document processing: text, fields and a notification",
        None,
        _steps(
            ("extract_text", "extract_text", {}),
            ("analyze_content", "analyze_content", {}),
            ("notify_processed", "send_notification", {"integration_type": "slack"}),
        ),
    )


TEMPLATE_BUILDERS = (
    invoice_workflow,
    contract_workflow,
    receipt_workflow,
    legal_workflow,
    financial_workflow,
    form_workflow,
    generic_workflow,
)


def default_workflows() -> list[WorkflowDefinition]:
    return [build() for build in TEMPLATE_BUILDERS]
