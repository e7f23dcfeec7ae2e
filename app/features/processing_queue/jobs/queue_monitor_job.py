"""
Headless queue monitor.

Runs the reconciler outside the API process and logs a stats summary
every poll interval, so queue health shows up in the worker's logs.

    python -m app.jobs.worker queue_monitor
"""

import asyncio

from app.config import settings
from app.db.pool import db_pool
from app.features.processing_queue.services.monitor import build_reconciler
from app.features.processing_queue.services.reconciler import DualChannelReconciler
from app.infrastructure.observability.logging import get_logger
from app.services.ai_client import AIServiceClient

logger = get_logger(__name__)


def summarize_monitor(reconciler: DualChannelReconciler) -> dict:
    """Flat summary of one monitor tick for the log line."""
    summary = {
        "total": reconciler.aggregate_stats().to_dict(),
        "workers": len(reconciler.workers()),
        "activity_log_size": len(reconciler.activity_log),
        "realtime_unavailable": reconciler.realtime_unavailable,
        "last_error": reconciler.last_error,
    }
    for queue_name in reconciler.queue_names:
        summary[queue_name] = reconciler.stats(queue_name).to_dict()
    return summary


async def start_queue_monitor() -> None:
    """Entry point for the queue monitor worker."""
    logger.info(
        "Starting queue monitor",
        queues=settings.tracked_queues(),
        poll_interval_seconds=settings.QUEUE_POLL_INTERVAL_SECONDS,
    )

    if settings.job_store_enabled():
        await db_pool.initialize()

    client = AIServiceClient()
    reconciler = build_reconciler(client)
    await reconciler.start()

    try:
        while True:
            await asyncio.sleep(settings.QUEUE_POLL_INTERVAL_SECONDS)
            logger.info("Queue monitor cycle", **summarize_monitor(reconciler))
    finally:
        await reconciler.stop()
        await client.close()
        if db_pool.initialized:
            await db_pool.close()
        logger.info("Queue monitor stopped")


if __name__ == "__main__":
    asyncio.run(start_queue_monitor())
