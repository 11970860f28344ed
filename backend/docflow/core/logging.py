"""
Structured logging setup (structlog).

Every module does::

    from docflow.core.logging import get_logger
    logger = get_logger(__name__)

    logger.info("Step completed", document_id=doc_id, duration_ms=12)

`setup_logging()` is called once per process (Celery worker start,
scripts).  Development gets a colourised console renderer; every other
environment emits one JSON object per line.
"""

from __future__ import annotations

import logging
import sys

import structlog

from docflow.core.config import settings


def setup_logging(level: str | None = None, *, json_logs: bool | None = None) -> None:
    """Configure structlog and route stdlib logging through it."""
    log_level = (level or settings.LOG_LEVEL).upper()
    if json_logs is None:
        json_logs = settings.APP_ENV != "development"

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("pypdf").setLevel(logging.ERROR)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to `name`."""
    return structlog.get_logger(name)
