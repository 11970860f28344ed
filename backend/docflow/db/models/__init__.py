"""
Models package — re-exports Base and all models.

When adding a new model:
    1. Create `docflow/db/models/<table_name>.py`
    2. Import it here
"""

from docflow.db.models.base import Base
from docflow.db.models.approval_request import ApprovalRequestRecord
from docflow.db.models.document import DocumentRecord
from docflow.db.models.workflow_definition import WorkflowDefinitionRecord

__all__ = [
    "Base",
    "ApprovalRequestRecord",
    "DocumentRecord",
    "WorkflowDefinitionRecord",
]
