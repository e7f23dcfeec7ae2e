"""
Wiring for the queue monitor: builds sources, change feed and reconciler
from settings. Used by the API lifespan and by the headless worker.
"""

from app.config import Settings, settings
from app.features.processing_queue.repository.job_table_repository import JobTableRepository
from app.features.processing_queue.services.change_feed import PostgresChangeFeed
from app.features.processing_queue.services.reconciler import DualChannelReconciler
from app.features.processing_queue.services.sources import (
    AIQueueSource,
    QueueSource,
    TableQueueSource,
)
from app.infrastructure.observability.logging import get_logger
from app.services.ai_client import AIServiceClient

logger = get_logger(__name__)

# NOTIFY channel -> queue name, see sql/queue_change_notify.sql
CHANGE_CHANNELS = {
    "processing_queue_changes": "ai",
    "video_transcoding_jobs_changes": "video",
}


def build_sources(client: AIServiceClient, config: Settings = settings) -> list[QueueSource]:
    sources: list[QueueSource] = []
    for queue_name in config.tracked_queues():
        if queue_name == "ai":
            sources.append(AIQueueSource(client))
        elif queue_name == "video":
            sources.append(TableQueueSource("video", JobTableRepository(config.VIDEO_JOBS_TABLE)))
    return sources


def build_reconciler(client: AIServiceClient, config: Settings = settings) -> DualChannelReconciler:
    sources = build_sources(client, config)
    queue_names = {source.queue_name for source in sources}

    change_feed = None
    if config.REALTIME_ENABLED and config.job_store_enabled():
        channels = {
            channel: queue_name
            for channel, queue_name in CHANGE_CHANNELS.items()
            if queue_name in queue_names
        }
        change_feed = PostgresChangeFeed(config.SUPABASE_DB_URL, channels)
    else:
        logger.info(
            "Realtime updates disabled, polling only",
            realtime_enabled=config.REALTIME_ENABLED,
            job_store_enabled=config.job_store_enabled(),
        )

    return DualChannelReconciler(
        sources,
        change_feed=change_feed,
        poll_interval=config.QUEUE_POLL_INTERVAL_SECONDS,
        recent_jobs_limit=config.RECENT_JOBS_LIMIT,
        active_jobs_limit=config.ACTIVE_JOBS_LIMIT,
        reconnect_attempts=config.REALTIME_RECONNECT_ATTEMPTS,
        reconnect_delay=config.REALTIME_RECONNECT_DELAY_SECONDS,
    )
