"""
Processing queue feature package.

Keeps the queue monitor slice together: domain models, the job-table
repository, the reconciler and batch cursor services, the headless
monitor job and the HTTP router.
"""

# Re-export the primary building blocks for easy access.
from .api.router import router as queue_router  # noqa: F401
from .services.reconciler import DualChannelReconciler  # noqa: F401
from .services.batch_controller import BatchCursorController  # noqa: F401
from .services.monitor import build_reconciler  # noqa: F401
from .jobs.queue_monitor_job import start_queue_monitor  # noqa: F401
from .domain.models import Job, QueueStats, ActivityLogItem, ChangeEvent  # noqa: F401
