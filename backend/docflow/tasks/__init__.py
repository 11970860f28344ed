"""
Celery application factory.
"""

from celery import Celery
from celery.signals import worker_process_init

celery_app = Celery("docflow")
celery_app.config_from_object("celeryconfig")

# Auto-discover tasks in these modules
celery_app.autodiscover_tasks([
    "docflow.tasks.processing_tasks",
    "docflow.tasks.approval_tasks",
])


@worker_process_init.connect
def _init_worker_process(**_kwargs):
    from docflow.core.config import settings
    from docflow.core.logging import setup_logging
    from docflow.core.tracing import setup_tracing

    setup_logging("DEBUG" if settings.APP_ENV == "development" else settings.LOG_LEVEL)
    setup_tracing()
