"""Shared constants and enums used across the application."""

from enum import StrEnum


class DocumentStatus(StrEnum):
    """Lifecycle of an uploaded document."""

    UPLOADED = "UPLOADED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class WorkflowStatus(StrEnum):
    """Publication status of a workflow definition."""

    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class ExecutionStatus(StrEnum):
    """Status of a workflow execution against one document."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    PAUSED_FOR_APPROVAL = "PAUSED_FOR_APPROVAL"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


ACTIVE_EXECUTION_STATUSES = frozenset({
    ExecutionStatus.PENDING,
    ExecutionStatus.RUNNING,
    ExecutionStatus.PAUSED_FOR_APPROVAL,
})


class StepType(StrEnum):
    """Step types understood by the workflow executor."""

    EXTRACT_TEXT = "extract_text"
    ANALYZE_CONTENT = "analyze_content"
    SEND_NOTIFICATION = "send_notification"
    STORE_DATA = "store_data"
    REQUIRE_APPROVAL = "require_approval"


class StepStatus(StrEnum):
    """Status recorded on a StepResult."""

    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    PENDING = "PENDING"


class ApprovalStatus(StrEnum):
    """Approval request lifecycle. PENDING is the only non-terminal state."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class ApprovalDecision(StrEnum):
    """Decisions a human approver can submit."""

    APPROVE = "approve"
    REJECT = "reject"


class RejectionPolicy(StrEnum):
    """What a REJECTED or EXPIRED approval does to the owning execution."""

    FAIL_WORKFLOW = "fail_workflow"
    COMPLETE_WORKFLOW = "complete_workflow"


class ExtractionSource(StrEnum):
    """Which strategy of the text extraction cascade produced the text."""

    PRIMARY_PARSE = "primary-parse"
    ALTERNATE_PARSE = "alternate-parse"
    OCR = "ocr"
    SALVAGE = "salvage"
    SALVAGE_FAILED = "salvage-failed"


class FileFormat(StrEnum):
    """Detected input formats."""

    PDF = "PDF"
    IMAGE = "IMAGE"
    TEXT = "TEXT"
    BINARY = "BINARY"


class ExtractionMethod(StrEnum):
    """Provenance tag recorded per extracted field."""

    AI = "ai"
    PATTERN = "pattern"
    HYBRID = "hybrid"
    NONE = "none"


class DocumentCategory(StrEnum):
    """Categories used for field extraction and workflow selection."""

    INVOICE = "invoice"
    CONTRACT = "contract"
    RECEIPT = "receipt"
    LEGAL = "legal"
    FINANCIAL = "financial"
    FORM = "form"
    GENERAL = "general"
    OTHER = "other"
    UNKNOWN = "unknown"


class SelectionMode(StrEnum):
    """How a workflow is chosen for a document."""

    MANUAL = "manual"
    AUTO = "auto"
    HYBRID = "hybrid"


class SelectionMethod(StrEnum):
    """Which rule produced a workflow selection."""

    MANUAL_ID = "manual_id"
    MANUAL_CATEGORY = "manual_category"
    AUTO = "auto"
    HYBRID_MANUAL = "hybrid_manual"
    HYBRID_AUTO = "hybrid_auto"
    DEFAULT = "default"


class IntegrationType(StrEnum):
    """Outbound integration kinds used by notification and storage steps."""

    SLACK = "slack"
    WEBHOOK = "webhook"
