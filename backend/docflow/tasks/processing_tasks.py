"""
Celery tasks — workflow execution.

Each task runs one executor call inside its own `asyncio.run()` with a
fresh runtime (engine, stores, clients), disposed when the call returns.
Executor entry points are idempotent, so a redelivered task (acks_late)
is a no-op once the execution has moved on.
"""

import asyncio

import structlog

from docflow.pipeline.engine import WorkflowRunResult
from docflow.runtime import build_runtime
from docflow.tasks import celery_app

logger = structlog.get_logger("tasks.processing")


async def _execute(document_id: str, workflow_id: str) -> WorkflowRunResult:
    async with build_runtime() as runtime:
        return await runtime.executor.execute_workflow(document_id, workflow_id)


async def _resume(document_id: str) -> WorkflowRunResult:
    async with build_runtime() as runtime:
        return await runtime.executor.resume_execution(document_id)


async def _cancel(document_id: str, reason: str) -> WorkflowRunResult:
    async with build_runtime() as runtime:
        return await runtime.executor.cancel_execution(document_id, reason)


@celery_app.task(bind=True, name="docflow.tasks.processing_tasks.execute_workflow")
def execute_workflow(self, document_id: str, workflow_id: str):
    """
    Run `workflow_id` on `document_id` until it completes, fails or
    pauses at an approval step.
    """
    task_log = logger.bind(task_id=self.request.id, document_id=document_id, workflow_id=workflow_id)
    task_log.info("Execution task started")
    try:
        result = asyncio.run(_execute(document_id, workflow_id))
    except Exception as exc:
        task_log.exception("Execution task failed", error=str(exc))
        raise

    task_log.info(
        "Execution task finished",
        status=result.status,
        steps_completed=result.steps_completed,
        total_steps=result.total_steps,
        noop=result.noop,
    )
    return result.to_dict()


@celery_app.task(bind=True, name="docflow.tasks.processing_tasks.resume_workflow")
def resume_workflow(self, document_id: str):
    """Continue a paused execution whose approval was decided out of band."""
    task_log = logger.bind(task_id=self.request.id, document_id=document_id)
    task_log.info("Resume task started")
    try:
        result = asyncio.run(_resume(document_id))
    except Exception as exc:
        task_log.exception("Resume task failed", error=str(exc))
        raise

    task_log.info("Resume task finished", status=result.status, noop=result.noop)
    return result.to_dict()


@celery_app.task(bind=True, name="docflow.tasks.processing_tasks.cancel_workflow")
def cancel_workflow(self, document_id: str, reason: str = "Cancelled"):
    task_log = logger.bind(task_id=self.request.id, document_id=document_id)
    result = asyncio.run(_cancel(document_id, reason))
    task_log.info("Cancel task finished", status=result.status, noop=result.noop)
    return result.to_dict()
