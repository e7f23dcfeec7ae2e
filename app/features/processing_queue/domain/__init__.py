"""
Domain models for the processing queue feature.
"""

from .models import (
    ActivityLogItem,
    BatchCursor,
    BatchResult,
    ChangeEvent,
    Job,
    QueueSnapshot,
    QueueStats,
    Worker,
)

__all__ = [
    "ActivityLogItem",
    "BatchCursor",
    "BatchResult",
    "ChangeEvent",
    "Job",
    "QueueSnapshot",
    "QueueStats",
    "Worker",
]
