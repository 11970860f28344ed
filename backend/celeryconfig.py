"""
Celery configuration for the docflow workers.

Loaded by `celery_app.config_from_object("celeryconfig")` in docflow/tasks/__init__.py.
Broker and result backend come from the environment (same variables as
docflow.core.config), defaulting to a local Redis.

Workers per queue:
    celery -A docflow.tasks worker -Q workflows    # text extraction, OCR, inference
    celery -A docflow.tasks worker -Q approvals    # decisions, expiry sweep
    celery -A docflow.tasks beat                   # periodic expiry sweep
"""

import os

# ═══════════════════════════════════════════════════════════
#  Broker & Results
# ═══════════════════════════════════════════════════════════

broker_url = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
result_backend = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
result_expires = 6 * 3600

task_serializer = "json"
result_serializer = "json"
accept_content = ["json"]

timezone = "UTC"
enable_utc = True

# ═══════════════════════════════════════════════════════════
#  Execution
# ═══════════════════════════════════════════════════════════

# Executor entry points are idempotent, so redelivery after a crash is safe
task_acks_late = True
task_reject_on_worker_lost = True
worker_prefetch_multiplier = 1

# OCR and inference calls are individually time-bounded; this caps a whole run
task_soft_time_limit = 900
task_time_limit = 960

# No automatic retries: a failed step is final for its execution
task_default_retry_delay = 30
task_max_retries = 0

worker_max_tasks_per_child = 200
worker_send_task_events = False
task_send_sent_event = False

# ═══════════════════════════════════════════════════════════
#  Routing
# ═══════════════════════════════════════════════════════════

task_default_queue = "workflows"
task_routes = {
    "docflow.tasks.processing_tasks.*": {"queue": "workflows"},
    "docflow.tasks.approval_tasks.*": {"queue": "approvals"},
}

imports = (
    "docflow.tasks.processing_tasks",
    "docflow.tasks.approval_tasks",
)

# ═══════════════════════════════════════════════════════════
#  Beat
# ═══════════════════════════════════════════════════════════

beat_schedule = {
    "expire-overdue-approvals": {
        "task": "docflow.tasks.approval_tasks.expire_overdue_approvals",
        "schedule": float(os.getenv("APPROVAL_SWEEP_INTERVAL_SECONDS", "300")),
    },
}
