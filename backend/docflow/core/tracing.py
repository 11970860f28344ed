"""
LangSmith tracing for inference and extraction calls.

    setup_tracing()                       # once per worker process

    @traceable_step(name="hf_zero_shot", run_type="llm")
    async def classify(self, text, labels): ...

Decorated coroutines are traced only after setup_tracing() has enabled
LangSmith; otherwise the wrapper awaits the function directly.
"""

from __future__ import annotations

import functools
import os
from typing import Any, Awaitable, Callable, TypeVar

from langsmith import traceable

from docflow.core.config import Settings, settings
from docflow.core.logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

_enabled = False


def setup_tracing(config: Settings | None = None) -> bool:
    """Export the LangSmith environment and enable tracing.  Returns the new state."""
    global _enabled
    config = config or settings

    if not (config.LANGSMITH_TRACING and config.LANGSMITH_API_KEY):
        _enabled = False
        logger.info("LangSmith tracing off", tracing_flag=config.LANGSMITH_TRACING)
        return False

    os.environ.update({
        "LANGSMITH_TRACING": "true",
        "LANGSMITH_API_KEY": config.LANGSMITH_API_KEY,
        "LANGSMITH_ENDPOINT": config.LANGSMITH_ENDPOINT,
        "LANGSMITH_PROJECT": config.LANGSMITH_PROJECT,
    })
    _enabled = True
    logger.info("LangSmith tracing on", project=config.LANGSMITH_PROJECT)
    return True


def is_tracing_enabled() -> bool:
    return _enabled


def traceable_step(
    name: str,
    run_type: str = "chain",
    metadata: dict[str, Any] | None = None,
    tags: list[str] | None = None,
) -> Callable[[F], F]:
    """
    Trace an async function under `name` while tracing is enabled.

    run_type is one of "chain", "llm", "tool", "retriever".  A tracer
    that cannot be built is logged once and the call runs untraced.
    """

    def decorator(func: F) -> F:
        traced: Callable[..., Awaitable[Any]] | None = None
        broken = False

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            nonlocal traced, broken
            if not _enabled or broken:
                return await func(*args, **kwargs)
            if traced is None:
                try:
                    traced = traceable(
                        name=name,
                        run_type=run_type,
                        metadata=dict(metadata or {}),
                        tags=list(tags or ["docflow"]),
                    )(func)
                except Exception as exc:
                    broken = True
                    logger.warning("LangSmith tracer unavailable", trace_name=name, error=str(exc))
                    return await func(*args, **kwargs)
            return await traced(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator
