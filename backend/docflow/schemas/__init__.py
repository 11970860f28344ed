"""Domain schemas shared by the engine, the stores and the tasks."""

from docflow.schemas.approval import ApprovalRequest, CreateApprovalRequest, NotificationRef
from docflow.schemas.document import (
    ApprovalLogEntry,
    Document,
    StepResult,
    WorkflowExecutionState,
)
from docflow.schemas.workflow import (
    AnalyzeContentConfig,
    ExtractTextConfig,
    RequireApprovalConfig,
    SendNotificationConfig,
    Step,
    StepConfig,
    StoreDataConfig,
    WorkflowDefinition,
    WorkflowTrigger,
)

__all__ = [
    "AnalyzeContentConfig",
    "ApprovalLogEntry",
    "ApprovalRequest",
    "CreateApprovalRequest",
    "Document",
    "ExtractTextConfig",
    "NotificationRef",
    "RequireApprovalConfig",
    "SendNotificationConfig",
    "Step",
    "StepConfig",
    "StepResult",
    "StoreDataConfig",
    "WorkflowDefinition",
    "WorkflowExecutionState",
    "WorkflowTrigger",
]
