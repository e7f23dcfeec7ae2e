"""
Service layer for the processing queue feature.
"""

from .activity_log import ActivityLogBuffer
from .batch_controller import BatchCursorController
from .change_feed import PostgresChangeFeed, decode_notification
from .monitor import build_reconciler
from .reconciler import DualChannelReconciler
from .sources import AIQueueSource, TableQueueSource
from .stats_store import QueueStatsStore

__all__ = [
    "ActivityLogBuffer",
    "BatchCursorController",
    "DualChannelReconciler",
    "PostgresChangeFeed",
    "decode_notification",
    "build_reconciler",
    "AIQueueSource",
    "TableQueueSource",
    "QueueStatsStore",
]
