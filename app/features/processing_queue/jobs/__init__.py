"""
Job runners for the processing queue feature.
"""

from .queue_monitor_job import start_queue_monitor

__all__ = ["start_queue_monitor"]
