"""
StepResolver — maps a step type to its handler.

To add a new step type:
    1. Add the value to StepType and a config model to schemas.workflow
    2. Implement a StepHandler in pipeline/steps/
    3. Register it in STEP_REGISTRY below
"""

from __future__ import annotations

from docflow.core.constants import StepType
from docflow.core.logging import get_logger
from docflow.pipeline.errors import UnknownStepTypeError
from docflow.pipeline.step import StepHandler
from docflow.pipeline.steps.analyze_content import AnalyzeContentHandler
from docflow.pipeline.steps.extract_text import ExtractTextHandler
from docflow.pipeline.steps.require_approval import RequireApprovalHandler
from docflow.pipeline.steps.send_notification import SendNotificationHandler
from docflow.pipeline.steps.store_data import StoreDataHandler

logger = get_logger(__name__)


# ═══════════════════════════════════════════════════════════
#  Step Registry
# ═══════════════════════════════════════════════════════════

STEP_REGISTRY: dict[StepType, type[StepHandler]] = {
    StepType.EXTRACT_TEXT: ExtractTextHandler,
    StepType.ANALYZE_CONTENT: AnalyzeContentHandler,
    StepType.SEND_NOTIFICATION: SendNotificationHandler,
    StepType.STORE_DATA: StoreDataHandler,
    StepType.REQUIRE_APPROVAL: RequireApprovalHandler,
}


class StepResolver:
    """Resolves step types to (cached, stateless) handler instances."""

    def __init__(self, registry: dict[StepType, type[StepHandler]] | None = None) -> None:
        self.registry = registry if registry is not None else STEP_REGISTRY
        self._handlers: dict[StepType, StepHandler] = {}

    def resolve(self, step_type: StepType | str) -> StepHandler:
        """
        Return the handler for `step_type`.

        Raises:
            UnknownStepTypeError: If no handler is registered for the type.
        """
        try:
            key = StepType(step_type)
        except ValueError:
            raise UnknownStepTypeError(str(step_type)) from None

        handler = self._handlers.get(key)
        if handler is None:
            handler_cls = self.registry.get(key)
            if handler_cls is None:
                raise UnknownStepTypeError(key)
            handler = self._handlers[key] = handler_cls()
            logger.debug("Step handler created", step_type=key, handler=handler_cls.__name__)
        return handler

    def list_step_types(self) -> list[str]:
        """Return all registered step types."""
        return [str(t) for t in self.registry]
