"""
StepHandler — abstract base class for all workflow step handlers.

One handler per step type.  The executor resolves the handler from
`step.type`, calls execute() and records the returned StepResult.
Handlers implement only the business logic; timing and failure
recording are shared here and in the executor.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from docflow.core.constants import StepStatus, StepType
from docflow.pipeline.context import StepContext
from docflow.schemas.common import utcnow
from docflow.schemas.document import StepResult


class StepHandler(ABC):
    """
    Base class for every step handler.

    Subclasses MUST implement:
        - step_type (StepType)  — the step type this handler serves
        - description (str)     — human-readable label for logs
        - execute(ctx)          — the actual business logic

    Raise StepExecutionError (or a subclass) on failure; the executor
    turns any exception into a FAILED StepResult and fails the run.
    """

    step_type: StepType
    description: str = "No description"

    @abstractmethod
    async def execute(self, ctx: StepContext) -> StepResult:
        ...

    # ─── Helpers available to all handlers ─────────────

    def _build(
        self,
        ctx: StepContext,
        started_at: datetime,
        status: StepStatus,
        result: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> StepResult:
        now = self._now()
        return StepResult(
            step_name=ctx.step.name,
            step_type=ctx.step.type,
            position=ctx.position,
            status=status,
            result=result or {},
            error=error,
            started_at=started_at,
            completed_at=now,
            duration_ms=int((now - started_at).total_seconds() * 1000),
        )

    def _success(self, ctx: StepContext, started_at: datetime, result: dict[str, Any] | None = None) -> StepResult:
        """Build a COMPLETED StepResult with timing."""
        return self._build(ctx, started_at, StepStatus.COMPLETED, result)

    def _pending(self, ctx: StepContext, started_at: datetime, result: dict[str, Any] | None = None) -> StepResult:
        """Build a PENDING StepResult; the executor pauses the run after recording it."""
        return self._build(ctx, started_at, StepStatus.PENDING, result)

    def _failure(
        self,
        ctx: StepContext,
        started_at: datetime,
        error: str,
        result: dict[str, Any] | None = None,
    ) -> StepResult:
        """Build a FAILED StepResult with timing and error message."""
        return self._build(ctx, started_at, StepStatus.FAILED, result, error)

    def _now(self) -> datetime:
        """UTC-aware now."""
        return utcnow()
